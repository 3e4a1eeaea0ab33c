"""vix-registry: offline-capable registry index builder and search engine."""

__version__ = "0.3.0"
