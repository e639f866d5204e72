"""Allow ``python -m scrollspine``."""

from scrollspine.cli import app

app()
