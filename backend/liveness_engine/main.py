"""
FastAPI application entry point for the Liveness Challenge Engine
"""
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from starlette.websockets import WebSocketState
import asyncio
import logging

from liveness_engine.config import config
from liveness_engine.models.data_models import LivenessConfig
from liveness_engine.services import (
    LatestFrameSource,
    LivenessSession,
    ModelLoader,
    WebSocketHandler,
)

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Liveness Challenge API",
    description="Randomized facial-gesture liveness sessions over WebSocket",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
model_loader = ModelLoader.default()
websocket_handler = WebSocketHandler()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Liveness Challenge API",
        "status": "running",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "services": {
            "api": "operational",
            "face_model": "loaded" if model_loader.is_loaded else "not_loaded"
        }
    }


async def _receive_frames(
    websocket: WebSocket,
    session: LivenessSession,
    frame_source: LatestFrameSource
) -> None:
    """Feed client frames into the session until the client stops or leaves"""
    try:
        while True:
            message = await websocket_handler.receive_message(websocket)
            if message is None:
                continue
            if message.get("type") == "stop":
                logger.info("Client requested stop")
                session.stop_session()
                return
            websocket_handler.accept_video_frame(message, frame_source)
    except WebSocketDisconnect:
        session.stop_session()


@app.websocket("/ws/liveness")
async def liveness_endpoint(websocket: WebSocket):
    """
    Run one liveness session over a WebSocket.

    The client may open with {"type": "start", "config": {...}} to override
    session parameters, then streams video_frame messages. Every state change
    is sent back as a session_update; the socket closes after the terminal
    update.
    """
    await websocket_handler.handle_connection(websocket)
    frame_source = LatestFrameSource()

    try:
        message = await websocket_handler.receive_message(websocket)
    except WebSocketDisconnect:
        return

    overrides = None
    if message and message.get("type") == "start":
        overrides = message.get("config")
    elif message:
        websocket_handler.accept_video_frame(message, frame_source)

    try:
        session_config = LivenessConfig.from_dict(overrides, base=config.liveness_defaults())
    except (TypeError, ValueError) as e:
        await websocket_handler.send_error(websocket, f"Invalid session config: {e}")
        await websocket_handler.close_connection(websocket, code=1008, reason="Invalid config")
        return

    session = LivenessSession(frame_source, model_loader=model_loader)
    updates = session.start_session(session_config)
    receiver = asyncio.create_task(_receive_frames(websocket, session, frame_source))

    disconnected = False
    try:
        async for state in updates:
            await websocket_handler.send_state(websocket, state)
    except Exception as e:
        disconnected = True
        logger.warning(f"Stopped streaming session updates: {e}")
    finally:
        session.stop_session()
        receiver.cancel()
        await asyncio.gather(receiver, return_exceptions=True)
        await session.wait_closed()

    if not disconnected and websocket.client_state == WebSocketState.CONNECTED:
        await websocket_handler.close_connection(websocket, reason=session.state.status.value)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
