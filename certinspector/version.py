"""Version information for certinspector."""

from __future__ import annotations

__version__ = "1.0.0"


def user_agent(current: str = __version__) -> str:
    return f"certinspector/{current}"
