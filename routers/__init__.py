"""Routers package."""

from . import (
    assets,
    health,
    videos,
)
