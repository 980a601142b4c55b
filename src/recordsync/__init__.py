"""recordsync - scheduled record synchronization between data sources."""

__version__ = "0.1.0"
