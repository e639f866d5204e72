"""Progress reporters for enumeration passes."""

from scrollspine.reporter.simple import SimpleProgressReporter

__all__ = ["SimpleProgressReporter"]
