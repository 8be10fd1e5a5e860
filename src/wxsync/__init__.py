"""wxsync - keep a WiX descriptor in step with the source tree it packages."""

__version__ = "0.1.0"
