"""Wedding card photo uploads: local image cache, optimization session and selection state."""

__version__ = "1.0.0"
