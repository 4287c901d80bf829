"""HTTP API for the automation engine."""

from .endpoints import router

__all__ = ["router"]
