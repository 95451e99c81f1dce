from pydantic import BaseModel
import os

class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data/smartcycle.db")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3001"))
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

    jwt_secret: str = os.getenv("JWT_SECRET", "supersecretkey")
    jwt_expires_seconds: int = int(os.getenv("JWT_EXPIRES_SECONDS", "3600"))

    ws_ping_interval: float = float(os.getenv("WS_PING_INTERVAL", "5"))
    ws_ping_timeout: float = float(os.getenv("WS_PING_TIMEOUT", "30"))

    # starting point for freshly provisioned bikes
    default_lat: float = float(os.getenv("DEFAULT_LAT", "19.0760"))
    default_lng: float = float(os.getenv("DEFAULT_LNG", "72.8777"))

    @property
    def jwt_secret_is_default(self) -> bool:
        return self.jwt_secret == "supersecretkey"

settings = Settings()
