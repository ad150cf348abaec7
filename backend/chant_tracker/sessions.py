"""
Session tokens: a signed JWT for cheap rejection of tampered tokens, backed
by one server-side row per user that is authoritative for revocation and
expiry. Logging in again overwrites the row, revoking the older token.
"""
import hmac
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

import jwt
from supabase import Client

from .config import Settings
from .credentials import UserRecord
from .db import get_session, upsert_session
from .engine.dates import parse_timestamp, utc_now
from .errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class Identity:
    user_id: str
    phone: str


class SessionManager:
    def __init__(self, db: Client, settings: Settings, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.ttl = timedelta(minutes=settings.session_ttl_minutes)
        self.clock = clock

    def issue(self, user: UserRecord) -> IssuedSession:
        now = self.clock()
        expires_at = now + self.ttl
        payload = {
            "user_id": user.user_id,
            "phone": user.phone,
            "jti": uuid.uuid4().hex,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        upsert_session(self.db, user.user_id, token, expires_at.isoformat())
        logger.info("Session issued for %s...", user.user_id[:8])
        return IssuedSession(token=token, expires_at=expires_at)

    def validate(self, token: str | None) -> Identity:
        if not token or not token.strip():
            raise Unauthorized("Missing token", code="missing_token")
        token = token.strip()

        now = self.clock()
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                # Expiry is checked below against self.clock.
                options={"verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidSignatureError:
            raise Forbidden("Invalid or expired token", code="invalid_or_expired")
        except jwt.DecodeError:
            raise Unauthorized("Malformed token", code="malformed_token")
        except jwt.InvalidTokenError:
            raise Forbidden("Invalid or expired token", code="invalid_or_expired")

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or exp <= now.timestamp():
            raise Forbidden("Invalid or expired token", code="invalid_or_expired")

        user_id = payload.get("user_id")
        if not user_id:
            raise Unauthorized("Invalid token payload", code="invalid_token_payload")

        row = get_session(self.db, user_id)
        if not row or not hmac.compare_digest(row.get("token") or "", token):
            raise Unauthorized("Session not found", code="session_not_found")

        expires_at = parse_timestamp(row.get("expires_at"))
        if expires_at is None or expires_at <= now:
            raise Forbidden("Session expired", code="session_expired")

        return Identity(user_id=str(user_id), phone=payload.get("phone") or "")
