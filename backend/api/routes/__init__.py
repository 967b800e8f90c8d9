"""API Routes - Domain-based routing"""

from .connection import router as connection_router
from .commands import router as commands_router
from .pacer import router as pacer_router
from .diagnostics import router as diagnostics_router

__all__ = [
    'connection_router',
    'commands_router',
    'pacer_router',
    'diagnostics_router',
]
