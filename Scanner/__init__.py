"""rule-scanner: one catalog and one command surface over several static-analysis engines."""

__version__ = "0.1.0"
