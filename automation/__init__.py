"""Rule-based workflow automation engine."""

__version__ = "1.0.0"
