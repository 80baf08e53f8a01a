"""Four Pillars chart engine and yearly fortune report."""

__version__ = "1.0.0"
