#!/usr/bin/env python3
"""FastAPI bridge exposing a fieldglow game session over HTTP and WebSocket."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from game.config import GameConfig
from game.logging import configure_logging, get_logger
from game.session import GameSession
from spatial.geo import Coordinate

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Global session instance
session: Optional[GameSession] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan."""
    global session

    # Startup
    logger.info("api.starting")

    config = GameConfig()
    configure_logging(config.log_level)
    session = GameSession(config=config)

    await session.initialize()
    logger.info("api.session_initialized", session_id=str(session.session_id))

    yield

    # Shutdown
    logger.info("api.stopping")
    if session:
        await session.shutdown()


# Create FastAPI app
app = FastAPI(
    title="fieldglow",
    description="Location-based exploration game engine",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response Models
class PositionModel(BaseModel):
    """Geographic point in decimal degrees."""

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class StartRequest(BaseModel):
    """Request to start a session. Omit the position to play without GPS."""

    position: Optional[PositionModel] = None
    heading: Optional[float] = None


class PositionUpdateRequest(BaseModel):
    """A GPS sample."""

    position: PositionModel
    heading: Optional[float] = None
    accuracy: Optional[float] = None
    speed: Optional[float] = None


class OrientationRequest(BaseModel):
    """A compass sample."""

    heading: float


class MoveRequest(BaseModel):
    """Simulated walk along the current heading."""

    meters: float


class TurnRequest(BaseModel):
    """Simulated rotation."""

    degrees: float


class SessionStatus(BaseModel):
    """Session status response."""

    session_id: str
    state: str
    message: str
    current_time_ms: float
    event_count: int
    node_count: int
    indexed_nodes: int
    companions: int
    debug_mode: bool
    fake_sensors: bool
    pending_timers: list[str]


def _require_session() -> GameSession:
    if not session:
        raise HTTPException(status_code=503, detail="Session not initialized")
    return session


def _result(effects) -> dict:
    """Feedback produced by an action plus the resulting snapshot."""
    return {
        "feedback": [feedback.to_dict() for feedback in effects],
        "snapshot": _require_session().snapshot(),
    }


# REST Endpoints
@app.get("/")
async def api_info():
    """API information endpoint."""
    return {"name": "fieldglow", "version": "0.1.0", "status": "running"}


@app.get("/status", response_model=SessionStatus)
async def get_status():
    """Get current session status."""
    return SessionStatus(**_require_session().get_status())


@app.get("/snapshot")
async def get_snapshot():
    """Full render view of the session."""
    return _require_session().snapshot()


@app.get("/nodes/nearby")
async def get_nearby_nodes(radius: float = 50.0):
    """Uncaptured nodes within ``radius`` meters of the player."""
    current = _require_session()
    if radius < 0:
        raise HTTPException(status_code=422, detail="radius must be non-negative")

    results = current.query_nodes_in_radius(radius)
    return {
        "count": len(results),
        "nodes": [{"id": node_id, "distance": dist} for node_id, dist in results],
    }


@app.post("/start")
async def start_session(request: Optional[StartRequest] = None):
    """Start the session."""
    request = request or StartRequest()
    position = request.position.to_coordinate() if request.position else None
    effects = await _require_session().start(position, request.heading)
    return _result(effects)


@app.post("/sensors/position")
async def position_update(request: PositionUpdateRequest):
    """Feed a GPS sample."""
    effects = await _require_session().on_position_update(
        request.position.to_coordinate(),
        heading=request.heading,
        accuracy=request.accuracy,
        speed=request.speed,
    )
    return _result(effects)


@app.post("/sensors/orientation")
async def orientation_update(request: OrientationRequest):
    """Feed a compass sample."""
    effects = await _require_session().on_orientation_update(request.heading)
    return _result(effects)


@app.post("/capture/begin")
async def begin_capture():
    effects = await _require_session().begin_capture()
    return _result(effects)


@app.post("/capture/end")
async def end_capture():
    effects = await _require_session().end_capture()
    return _result(effects)


@app.post("/evacuate")
async def evacuate():
    effects = await _require_session().evacuate()
    return _result(effects)


@app.post("/evacuate/emergency")
async def emergency_evacuate():
    effects = await _require_session().emergency_evacuate()
    return _result(effects)


@app.post("/continue")
async def continue_exploring():
    effects = await _require_session().continue_exploring()
    return _result(effects)


@app.post("/reset")
async def reset_session():
    effects = await _require_session().reset()
    return _result(effects)


@app.post("/overrides/outdoor")
async def toggle_manual_outdoor():
    effects = await _require_session().toggle_manual_outdoor()
    return _result(effects)


@app.post("/overrides/home")
async def toggle_manual_home():
    effects = await _require_session().toggle_manual_home()
    return _result(effects)


@app.post("/debug/toggle")
async def toggle_debug():
    effects = await _require_session().toggle_debug()
    return _result(effects)


@app.post("/debug/move")
async def simulate_move(request: MoveRequest):
    """Walk along the current heading."""
    effects = await _require_session().simulate_move(request.meters)
    return _result(effects)


@app.post("/debug/turn")
async def simulate_turn(request: TurnRequest):
    """Rotate the heading."""
    effects = await _require_session().simulate_turn(request.degrees)
    return _result(effects)


# WebSocket endpoint for real-time feedback streaming
@app.websocket("/ws/feedback")
async def websocket_feedback(websocket: WebSocket):
    """Stream feedback effects in real-time via WebSocket."""
    await websocket.accept()

    if not session:
        await websocket.close(code=1011, reason="Session not initialized")
        return

    logger.info("websocket.connected")

    async def send_feedback(feedback):
        """Send feedback to WebSocket client."""
        try:
            await websocket.send_json(feedback.to_dict())
        except Exception as e:
            logger.error("websocket.send_failed", error=str(e))

    session.add_feedback_listener(send_feedback)
    await websocket.send_json({"subscribed": True, "session_id": str(session.session_id)})

    try:
        # Keep connection alive and handle incoming messages
        while True:
            message = await websocket.receive_text()
            logger.debug("websocket.message_received", message=message)

    except WebSocketDisconnect:
        logger.info("websocket.disconnected")
    finally:
        session.remove_feedback_listener(send_feedback)
        logger.info("websocket.closed")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
