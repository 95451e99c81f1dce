import uvicorn

from .settings import settings

if __name__ == "__main__":
    uvicorn.run(
        "smartcycle.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        # protocol-level heartbeat; a session missing its pong is closed
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
    )
