"""neuFramework: a small FastAPI site framework."""

__version__ = "5.0.0"
