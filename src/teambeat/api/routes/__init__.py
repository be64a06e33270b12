"""
API routes for TeamBeat.
"""

from teambeat.api.routes import (
    agreements,
    auth,
    boards,
    cards,
    columns,
    comments,
    health,
    scenes,
    series,
    sse,
    templates,
)

__all__ = [
    "agreements",
    "auth",
    "boards",
    "cards",
    "columns",
    "comments",
    "health",
    "scenes",
    "series",
    "sse",
    "templates",
]
