"""
Command Routes - Ad-hoc send, motors, jog, wait for a reply
"""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..dependencies import require_connection

router = APIRouter(tags=["commands"])


class SendRequest(BaseModel):
    command: str


class JogRequest(BaseModel):
    direction: int
    feedrate: int = 3000


class WaitLineRequest(BaseModel):
    timeout_ms: int = 1000


@router.post("/send")
def send_command(req: SendRequest):
    """Send one command line as typed."""
    ctrl = require_connection()
    if not req.command.strip():
        raise HTTPException(status_code=400, detail="Empty command")
    return {"success": ctrl.send(req.command)}


@router.post("/motors/enable")
def enable_motors():
    """M17"""
    ctrl = require_connection()
    return {"success": ctrl.enable_motors()}


@router.post("/motors/disable")
def disable_motors():
    """M18"""
    ctrl = require_connection()
    return {"success": ctrl.disable_motors()}


@router.post("/jog")
def jog(req: JogRequest):
    """
    Jog X by the fixed jog distance.

    direction >= 0 moves positive, < 0 negative.
    """
    ctrl = require_connection()
    if req.feedrate <= 0:
        raise HTTPException(status_code=400, detail=f"Invalid feedrate: {req.feedrate}")
    return {"success": ctrl.jog(req.direction, req.feedrate)}


@router.post("/wait_line")
def wait_line(req: WaitLineRequest):
    """Consume the next received line, or null after timeout_ms."""
    ctrl = require_connection()
    line = ctrl.wait_for_line(max(0, req.timeout_ms) / 1000)
    return {"line": line}
