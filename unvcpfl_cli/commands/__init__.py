"""CLI command groups for unvcpfl."""

__all__ = [
    "gpu",
    "monitors",
    "profile",
    "run",
]
