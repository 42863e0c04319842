"""beatgraph - beat dependency graph engine for story structure."""

__version__ = "0.1.0"
