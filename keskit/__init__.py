"""Client-side types, event streams, a retrying HTTP client and YAML configuration for a key encryption service."""

__version__ = "0.1.0"