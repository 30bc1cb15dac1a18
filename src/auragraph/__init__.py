"""auragraph: a weighted social graph edge store."""

__version__ = "0.1.0"
