"""
Stepper Link - Main Entry Point

Run with: uvicorn main:app --reload --port 8000
"""

import sys
import os
from pathlib import Path

# Add backend to path for imports
backend_path = Path(__file__).parent
sys.path.insert(0, str(backend_path))

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from api.app import create_app
from api.dependencies import get_app_state


HOST = os.getenv("STEPPER_LINK_HOST", "0.0.0.0")
PORT = int(os.getenv("STEPPER_LINK_PORT", "8000"))


def create_full_app() -> FastAPI:
    """Create the full application with static file serving"""

    app = create_app()

    # Mount frontend (if exists)
    frontend_path = backend_path.parent / "frontend" / "build"
    if frontend_path.exists():
        app.mount("/", StaticFiles(directory=str(frontend_path), html=True), name="frontend")

    return app


# Create app instance
app = create_full_app()


# === Startup/Shutdown Events ===

@app.on_event("startup")
async def startup_event():
    """Print banner on startup"""
    state = get_app_state()
    pacer = state.controller.pacer
    print("=" * 50)
    print("  Stepper Link v1.0")
    print("=" * 50)
    print()
    print("Link:")
    print(f"  Baud: {state.controller.serial_config.baud_rate} 8N1, LF-terminated ASCII")
    print(f"  Pacer: {pacer.settings.distance_mm:g}mm @ {pacer.feedrate} mm/min")
    print()
    print(f"API ready at http://localhost:{PORT}")
    print(f"Docs at http://localhost:{PORT}/docs")
    print()


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the pacer and close the port"""
    state = get_app_state()
    if state.is_connected:
        print("[SHUTDOWN] Disconnecting from board...")
        state.disconnect()


# === Health Check ===

@app.get("/health")
def health_check():
    """Health check endpoint"""
    state = get_app_state()
    return {
        "status": "ok",
        "version": "1.0.0",
        "connected": state.is_connected,
        "pacer": state.controller.pacer.status.name.lower(),
    }


# === Run directly ===

def main():
    uvicorn.run(
        "main:app",
        host=HOST,
        port=PORT,
        reload=os.getenv("STEPPER_LINK_RELOAD", "0") == "1",
    )


if __name__ == "__main__":
    main()
