"""
Connection Routes - Connect/disconnect, status and session log
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional

from ..dependencies import get_app_state, AppState

router = APIRouter(tags=["connection"])


class ConnectRequest(BaseModel):
    port: str


@router.get("/ports")
def get_ports():
    """List available serial ports."""
    from core.serial_transport import SerialTransport
    return {"ports": SerialTransport.list_ports()}


@router.get("/status")
def get_status(state: AppState = Depends(get_app_state)):
    """Get current connection and pacer status."""
    return state.get_status()


@router.get("/log")
def get_log(limit: Optional[int] = None, state: AppState = Depends(get_app_state)):
    """Get the session log, oldest first."""
    return {"lines": state.get_log(limit)}


@router.post("/connect")
def connect(req: ConnectRequest, state: AppState = Depends(get_app_state)):
    """Open a session on the given port."""
    success = state.connect(req.port)
    return {"success": success, "message": "Connected" if success else "Connection failed"}


@router.post("/disconnect")
def disconnect(state: AppState = Depends(get_app_state)):
    """Stop everything and close the port."""
    state.disconnect()
    return {"success": True}
