"""Single-pass runner and the watch loop."""

from scrollspine.watch.interval import format_interval, parse_interval
from scrollspine.watch.scheduler import WatchScheduler, run_one_pass

__all__ = [
    "WatchScheduler",
    "format_interval",
    "parse_interval",
    "run_one_pass",
]
