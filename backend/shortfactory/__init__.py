"""Short Factory - staged short-form video production pipeline."""

__version__ = "0.1.0"
