"""GLB to VRM 1.0 avatar conversion."""

__version__ = "0.1.0"
