"""
Phone + mPIN credentials. Owns the users table.
"""
import logging
import re
from dataclasses import dataclass

import bcrypt
from supabase import Client

from .db import get_user_by_phone, upsert_user
from .engine.dates import utc_now
from .errors import NotFound, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^\+?[0-9]{4,15}$")
PIN_RE = re.compile(r"^[0-9]{4,8}$")


@dataclass(frozen=True)
class UserRecord:
    user_id: str
    phone: str
    display_name: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "UserRecord":
        return cls(user_id=str(row["user_id"]), phone=row["phone"], display_name=row.get("display_name"))

    def public(self) -> dict:
        return {"user_id": self.user_id, "phone": self.phone, "display_name": self.display_name}


def normalize_phone(phone: str | None) -> str:
    phone = (phone or "").strip()
    if not phone:
        raise ValidationError("Phone number and mPIN are required")
    if not PHONE_RE.match(phone):
        raise ValidationError("Phone number must contain 4 to 15 digits")
    return phone


class CredentialStore:
    def __init__(self, db: Client, rounds: int = 10):
        self.db = db
        self.rounds = rounds

    def register(self, phone: str | None, pin: str | None, display_name: str | None = None) -> UserRecord:
        if not (phone or "").strip() or not pin:
            raise ValidationError("Phone number and mPIN are required")
        phone = normalize_phone(phone)
        if not PIN_RE.match(pin):
            raise ValidationError("mPIN must be 4 to 8 digits")

        row = {
            "phone": phone,
            "credential_hash": self._hash(pin),
            "updated_at": utc_now().isoformat(),
        }
        display_name = (display_name or "").strip()
        if display_name:
            row["display_name"] = display_name

        user = UserRecord.from_row(upsert_user(self.db, row))
        logger.info("User registered: %s...", user.user_id[:8])
        return user

    def verify(self, phone: str | None, pin: str | None) -> UserRecord:
        if not (phone or "").strip() or not pin:
            raise ValidationError("Phone and mPIN required")
        row = get_user_by_phone(self.db, phone.strip())
        if not row:
            raise NotFound("User not found", code="user_not_found")
        stored = row.get("credential_hash")
        # bcrypt raises on inputs over 72 bytes.
        if not stored or not PIN_RE.match(pin) or not bcrypt.checkpw(pin.encode(), stored.encode()):
            raise Unauthorized("Invalid mPIN", code="invalid_credentials")
        return UserRecord.from_row(row)

    def _hash(self, pin: str) -> str:
        return bcrypt.hashpw(pin.encode(), bcrypt.gensalt(rounds=self.rounds)).decode()
