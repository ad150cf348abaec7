import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    session_ttl_minutes: int = 1440
    bcrypt_rounds: int = 10
    streak_max_attempts: int = 5
    firebase_credentials: str | None = None
    allowed_origins: tuple[str, ...] = ("*",)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET is not set in .env")
    origins = os.getenv("ALLOWED_ORIGINS", "*")
    return Settings(
        jwt_secret=secret,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        session_ttl_minutes=int(os.getenv("SESSION_TTL_MINUTES", "1440")),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "10")),
        streak_max_attempts=int(os.getenv("STREAK_MAX_ATTEMPTS", "5")),
        firebase_credentials=os.getenv("FIREBASE_CREDENTIALS") or None,
        allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )
