"""
Diagnostics Routes - Listen test for boards that stay silent
"""

from fastapi import APIRouter
from pydantic import BaseModel
from typing import Optional

from core.diagnostics import DiagnosticTiming, run_listen_test
from ..dependencies import require_connection

router = APIRouter(prefix="/diagnostics", tags=["diagnostics"])


class ListenTestRequest(BaseModel):
    startup_s: Optional[float] = None
    response_s: Optional[float] = None
    raw_s: Optional[float] = None


@router.post("/listen")
def listen_test(req: Optional[ListenTestRequest] = None):
    """Run the listen test. Blocks for several seconds with default timings."""
    ctrl = require_connection()
    timing = DiagnosticTiming()
    if req is not None:
        if req.startup_s is not None:
            timing.startup_s = req.startup_s
        if req.response_s is not None:
            timing.response_s = req.response_s
        if req.raw_s is not None:
            timing.raw_s = req.raw_s
    return run_listen_test(ctrl, timing).to_dict()
