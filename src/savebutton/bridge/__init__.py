"""Bridge to the optional local companion daemon."""

from .daemon import DaemonBridge

__all__ = ["DaemonBridge"]
