"""Allow ``python -m savebutton``."""

from .main import cli

cli()
