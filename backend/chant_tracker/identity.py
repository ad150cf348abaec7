"""
Identity-provider login: a Firebase ID token stands in for phone + mPIN.
The verified ``phone_number`` claim keys the same users row as PIN login.
"""
import logging
import threading
from typing import Callable

import firebase_admin
from firebase_admin import auth, credentials
from supabase import Client

from .credentials import UserRecord
from .db import get_user_by_phone, insert_user, is_unique_violation
from .errors import Internal, Unauthorized

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()


def ensure_firebase_app(credentials_path: str | None = None) -> firebase_admin.App:
    with _init_lock:
        try:
            return firebase_admin.get_app()
        except ValueError:
            cred = credentials.Certificate(credentials_path) if credentials_path else None
            return firebase_admin.initialize_app(cred)


def firebase_verifier(credentials_path: str | None = None) -> Callable[[str], dict]:
    def verify(id_token: str) -> dict:
        app = ensure_firebase_app(credentials_path)
        return auth.verify_id_token(id_token, app=app)
    return verify


class ProviderCredentialStore:
    def __init__(self, db: Client, verifier: Callable[[str], dict]):
        self.db = db
        self.verifier = verifier

    def verify(self, id_token: str | None) -> UserRecord:
        if not id_token:
            raise Unauthorized("Missing identity token", code="invalid_identity_token")
        try:
            claims = self.verifier(id_token)
        except auth.CertificateFetchError as e:
            logger.error("Identity provider certificate fetch failed: %s", e)
            raise Internal("Identity provider unavailable")
        except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError):
            raise Unauthorized("Invalid identity token", code="invalid_identity_token")

        phone = claims.get("phone_number")
        if not phone:
            raise Unauthorized("Identity token has no phone number", code="phone_claim_missing")
        return self._find_or_create(phone, claims.get("name"))

    def _find_or_create(self, phone: str, name: str | None) -> UserRecord:
        row = get_user_by_phone(self.db, phone)
        if row:
            return UserRecord.from_row(row)
        try:
            row = insert_user(self.db, {"phone": phone, "display_name": name or None})
            logger.info("User created from identity provider: %s...", str(row["user_id"])[:8])
        except Exception as e:
            if not is_unique_violation(e):
                raise
            row = get_user_by_phone(self.db, phone)
        return UserRecord.from_row(row)
