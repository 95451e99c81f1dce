import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .db import init_db
from .deps import get_manager
from .errors import ApiError, InternalError
from .routers import auth, bikes, guardian, history
from .settings import settings
from .utils import add_cors
from .ws_manager import Broadcaster, ConnectionManager, encode_message

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
log = logging.getLogger("smartcycle")

app = FastAPI(title="Smart-Cycle API", version="0.1.0")
add_cors(app)

app.state.manager = ConnectionManager()
app.state.broadcaster = Broadcaster(app.state.manager)
app.state.started_at = time.monotonic()

app.include_router(auth.router)
app.include_router(bikes.router)
app.include_router(history.router)
app.include_router(guardian.router)

@app.on_event("startup")
async def on_startup():
    init_db()
    if settings.environment == "production" and settings.jwt_secret_is_default:
        log.warning("Using default JWT secret in production! Set JWT_SECRET.")
    app.state.started_at = time.monotonic()
    # fresh registry per running loop
    app.state.manager = ConnectionManager()
    broadcaster = app.state.broadcaster = Broadcaster(app.state.manager)
    broadcaster.bind(asyncio.get_running_loop())
    app.state.forwarder = asyncio.create_task(broadcaster.forward())
    log.info("Smart-Cycle API ready (environment=%s)", settings.environment)

@app.on_event("shutdown")
async def on_shutdown():
    app.state.broadcaster.unbind()
    task = getattr(app.state, "forwarder", None)
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

# ---------------- errors ----------------
@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    reasons = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        reasons.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "Invalid request: " + "; ".join(reasons)})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return await api_error_handler(request, InternalError())

# ---------------- ops ----------------
@app.get("/health")
def health(manager: ConnectionManager = Depends(get_manager)):
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "clientsConnected": len(manager),
        "uptime": round(time.monotonic() - app.state.started_at, 3),
        "environment": settings.environment,
    }

@app.get("/env-info")
def env_info():
    if settings.environment == "production":
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return {
        "environment": settings.environment,
        "host": settings.host,
        "port": settings.port,
        "corsOrigins": settings.cors_origins,
        "wsPingInterval": settings.ws_ping_interval,
        "wsPingTimeout": settings.ws_ping_timeout,
        "jwtSecretSet": not settings.jwt_secret_is_default,
    }

# ---------------- realtime ----------------
@app.websocket("/ws")
async def realtime_ws(websocket: WebSocket):
    # liveness is uvicorn's protocol ping/pong, see __main__
    manager: ConnectionManager = websocket.app.state.manager
    session_id = uuid.uuid4().hex[:12]
    await manager.connect(websocket)
    try:
        await websocket.send_text(encode_message("connected", {"sessionId": session_id}))
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        log.debug("session %s closed", session_id)
        await manager.disconnect(websocket)
