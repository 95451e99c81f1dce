from fastapi import Request

from .ws_manager import Broadcaster, ConnectionManager

def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager

def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster
