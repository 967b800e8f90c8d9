"""
API Dependencies - Dependency injection for FastAPI

One StepperController per process; it owns the (single) session.
"""

from dataclasses import dataclass, field
from typing import Optional, List
import sys
import os

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.transport import MockFirmwareChannel
from controller import StepperController


MOCK_PORT = "mock"


@dataclass
class AppState:
    """Application state container."""
    controller: StepperController = field(default_factory=StepperController)

    @property
    def is_connected(self) -> bool:
        return self.controller.is_connected

    def connect(self, port: str) -> bool:
        """Open a session. Port "mock" talks to an in-memory firmware."""
        if port == MOCK_PORT:
            return self.controller.connect(port, channel_factory=MockFirmwareChannel.open_for)
        return self.controller.connect(port)

    def disconnect(self) -> None:
        self.controller.disconnect()

    def get_status(self) -> dict:
        return self.controller.get_status()

    def get_log(self, limit: Optional[int] = None) -> List[str]:
        return self.controller.log_lines(limit)


# Global instance
_app_state: Optional[AppState] = None


def get_app_state() -> AppState:
    """Get the global app state instance."""
    global _app_state
    if _app_state is None:
        _app_state = AppState()
    return _app_state


def require_connection() -> StepperController:
    """Get controller, raising error if not connected."""
    from fastapi import HTTPException

    state = get_app_state()
    if not state.is_connected:
        raise HTTPException(status_code=400, detail="Not connected")
    return state.controller
