"""
Chant Tracker — FastAPI backend
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import get_settings
from .credentials import CredentialStore
from .db import close_client, get_client, get_user
from .engine.dates import utc_today
from .errors import ChantError, Internal, Unauthorized
from .identity import ProviderCredentialStore, firebase_verifier
from .leaderboard import build_leaderboard
from .ledger import EntryLedger
from .models import ChantCreate, LoginRequest, ProviderLoginRequest, RegisterRequest
from .sessions import Identity, IssuedSession, SessionManager
from .streaks import StreakService

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_settings()
    db = get_client()
    logger.info("Storage client ready")
    yield
    close_client(db)
    get_client.cache_clear()
    logger.info("Storage client closed")


limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="Chant Tracker API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().allowed_origins),
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


# ── Errors ────────────────────────────────────────────────────────────────────

def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": code, "message": message})


@app.exception_handler(ChantError)
async def chant_error_handler(request: Request, exc: ChantError):
    if isinstance(exc, Internal):
        logger.error("Internal error on %s: %s", request.url.path, exc.message, exc_info=exc)
        return _error(exc.status_code, exc.code, "Server error")
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error(400, "validation_error", "Request body is invalid")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(500, "internal_error", "Server error")


@app.get("/health")
def health():
    try:
        db = get_client()
        db.table("users").select("user_id").limit(1).execute()
        return {"status": "ok", "db": "ok"}
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
        raise HTTPException(status_code=503, detail="DB unavailable")


# ── Auth ──────────────────────────────────────────────────────────────────────

def get_bearer_token(authorization: str | None = Header(None)) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        raise Unauthorized("Invalid Authorization header format", code="missing_token")
    return token.strip() or None


def _session_manager(db) -> SessionManager:
    return SessionManager(db, get_settings())


def require_identity(token: str | None = Depends(get_bearer_token)) -> Identity:
    return _session_manager(get_client()).validate(token)


def _login_response(user, issued: IssuedSession) -> dict:
    return {
        "success": True,
        "token": issued.token,
        "expires_at": issued.expires_at.isoformat(),
        "user_id": user.user_id,
        "display_name": user.display_name,
        "phone": user.phone,
        "user": user.public(),
    }


@app.post("/auth/register", status_code=201)
@limiter.limit("10/minute")
def register(request: Request, body: RegisterRequest):
    store = CredentialStore(get_client(), rounds=get_settings().bcrypt_rounds)
    user = store.register(body.phone, body.pin, body.display_name)
    return {"success": True, "message": "User registered successfully", "user": user.public()}


@app.post("/auth/login")
@limiter.limit("20/minute")
def login(request: Request, body: LoginRequest):
    db = get_client()
    settings = get_settings()
    user = CredentialStore(db, rounds=settings.bcrypt_rounds).verify(body.phone, body.pin)
    issued = _session_manager(db).issue(user)
    return _login_response(user, issued)


@app.post("/auth/login/provider")
@limiter.limit("20/minute")
def login_with_provider(request: Request, body: ProviderLoginRequest):
    db = get_client()
    verifier = firebase_verifier(get_settings().firebase_credentials)
    user = ProviderCredentialStore(db, verifier).verify(body.id_token)
    issued = _session_manager(db).issue(user)
    return _login_response(user, issued)


@app.get("/auth/validate-session")
def validate_session(identity: Identity = Depends(require_identity)):
    row = get_user(get_client(), identity.user_id) or {}
    return {
        "success": True,
        "message": "Session valid",
        "user_id": identity.user_id,
        "phone": identity.phone,
        "user": {
            "user_id": identity.user_id,
            "phone": identity.phone,
            "display_name": row.get("display_name"),
        },
    }


# ── Chanting ──────────────────────────────────────────────────────────────────

@app.post("/chanting/add")
def add_chant(body: ChantCreate, identity: Identity = Depends(require_identity)):
    db = get_client()
    today = utc_today()
    entry = EntryLedger(db).append(identity.user_id, body.rounds, body.occurred_on, today=today)
    streaks = StreakService(db, max_attempts=get_settings().streak_max_attempts)
    state = streaks.record(identity.user_id, entry.occurred_on, today)
    return {
        "success": True,
        "message": "Chant entry added",
        "entry": entry.public(),
        **entry.public(),
        "streak": {"current": state.current_streak, "longest": state.longest_streak},
    }


@app.get("/chanting/summary")
def chant_summary(identity: Identity = Depends(require_identity)):
    db = get_client()
    summary = EntryLedger(db).summarize(identity.user_id)
    state = StreakService(db).current(identity.user_id)
    return {
        "success": True,
        **summary,
        "streak": {
            "current": state.current_streak,
            "longest": state.longest_streak,
            "last_counted_date": state.last_counted_date.isoformat() if state.last_counted_date else None,
        },
    }


@app.get("/chanting/leaderboard")
def leaderboard():
    return {"success": True, "message": "Leaderboard fetched", "data": build_leaderboard(get_client())}
