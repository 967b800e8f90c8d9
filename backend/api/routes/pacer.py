"""
Pacer Routes - Start/stop the jog loop and adjust its feed
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_app_state, AppState

router = APIRouter(prefix="/pacer", tags=["pacer"])


class FeedRequest(BaseModel):
    step: int


@router.get("")
def get_pacer(state: AppState = Depends(get_app_state)):
    """Pacer state, feed and current timing."""
    return state.controller.pacer.get_status()


@router.post("/start")
def start_pacer(state: AppState = Depends(get_app_state)):
    """
    Start the oscillating jog loop.

    Rejected (success=false) when already running or not connected.
    """
    success = state.controller.start_pacer()
    return {"success": success, "pacer": state.controller.pacer.get_status()}


@router.post("/stop")
def stop_pacer(state: AppState = Depends(get_app_state)):
    """Stop the loop and restore absolute positioning. Idempotent."""
    state.controller.stop_pacer()
    return {"success": True, "pacer": state.controller.pacer.get_status()}


@router.post("/feed")
def adjust_feed(req: FeedRequest, state: AppState = Depends(get_app_state)):
    """Change feed by a signed step (mm/min), clamped to the configured range."""
    return {"feedrate": state.controller.adjust_feed(req.step)}


@router.post("/speed_up")
def speed_up(state: AppState = Depends(get_app_state)):
    return {"feedrate": state.controller.speed_up()}


@router.post("/speed_down")
def speed_down(state: AppState = Depends(get_app_state)):
    return {"feedrate": state.controller.speed_down()}
