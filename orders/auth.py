"""
Email + password accounts with bearer session tokens.

Passwords are stored as werkzeug password hashes. Expired sessions are
purged whenever a new one is opened.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from models.auth import Session, User
from models.supplier_order import FieldIssue

from .backend import Backend
from .errors import AuthError, ConflictError, ValidationError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


class AuthService:
    def __init__(self, backend: Backend, session_ttl_hours: int = 168):
        self.backend = backend
        self.session_ttl = timedelta(hours=session_ttl_hours)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def sign_up(self, email: str, password: str) -> Session:
        """Create an account and sign it in."""
        email = self._check_credentials(email, password)
        try:
            [row] = self.backend.insert(
                "amg_users", [{"email": email, "password_hash": generate_password_hash(password)}]
            )
        except ConflictError as exc:
            raise ConflictError(f"An account already exists for {email}") from exc
        logger.info("Created account %s", email)
        return self._open_session(row)

    def sign_in(self, email: str, password: str) -> Session:
        rows = self.backend.select(
            "amg_users", filters=[("email", "eq", email.strip().lower())], limit=1
        ).rows
        if not rows or not check_password_hash(rows[0]["password_hash"], password):
            raise AuthError("Invalid email or password")
        return self._open_session(rows[0])

    def sign_out(self, token: str) -> None:
        self.backend.delete("amg_sessions", [("token", "eq", token)])

    def get_user(self, token: Optional[str]) -> User:
        """User owning a live session token; AuthError otherwise."""
        if not token:
            raise AuthError("Not signed in")
        sessions = self.backend.select(
            "amg_sessions",
            filters=[("token", "eq", token), ("expires_at", "gt", _iso(_now()))],
            limit=1,
        ).rows
        if not sessions:
            raise AuthError("Session expired or unknown")
        users = self.backend.select(
            "amg_users", filters=[("id", "eq", sessions[0]["user_id"])], limit=1
        ).rows
        if not users:
            raise AuthError("Session expired or unknown")
        return self._user(users[0])

    def update_user(self, token: str, email: Optional[str] = None, password: Optional[str] = None) -> User:
        """Change the signed-in user's email and/or password."""
        user = self.get_user(token)
        patch: dict = {}
        issues: list[FieldIssue] = []
        if email is not None:
            cleaned = email.strip().lower()
            if "@" not in cleaned:
                issues.append(FieldIssue(field="email", message="Invalid email address"))
            patch["email"] = cleaned
        if password is not None:
            if len(password) < MIN_PASSWORD_LENGTH:
                issues.append(FieldIssue(
                    field="password",
                    message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                ))
            patch["password_hash"] = generate_password_hash(password)
        if issues:
            raise ValidationError(issues)
        if not patch:
            return user
        [row] = self.backend.update("amg_users", patch, [("id", "eq", user.id)])
        logger.info("Updated account %d", user.id)
        return self._user(row)

    # ------------------------------------------------------------------

    @staticmethod
    def _check_credentials(email: str, password: str) -> str:
        issues = []
        cleaned = (email or "").strip().lower()
        if "@" not in cleaned:
            issues.append(FieldIssue(field="email", message="Invalid email address"))
        if len(password or "") < MIN_PASSWORD_LENGTH:
            issues.append(FieldIssue(
                field="password",
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            ))
        if issues:
            raise ValidationError(issues)
        return cleaned

    def _open_session(self, user_row: dict) -> Session:
        purged = self.backend.delete("amg_sessions", [("expires_at", "lte", _iso(_now()))])
        if purged:
            logger.debug("Purged %d expired session(s)", purged)
        token = secrets.token_urlsafe(32)
        expires_at = _iso(_now() + self.session_ttl)
        self.backend.insert(
            "amg_sessions",
            [{"token": token, "user_id": user_row["id"], "expires_at": expires_at}],
        )
        return Session(token=token, user=self._user(user_row), expires_at=expires_at)

    @staticmethod
    def _user(row: dict) -> User:
        return User(id=row["id"], email=row["email"], created_at=row.get("created_at"))
