from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .settings import settings

def add_cors(app: FastAPI) -> None:
    origins = [o.strip() for o in settings.cors_origins if o.strip()]
    wildcard = origins == ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else origins,
        # browsers refuse credentials with a wildcard origin
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
