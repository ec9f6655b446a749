"""Save Button: keep locally captured bookmarks, quotes and notes in sync with the server."""

__version__ = "0.1.0"
