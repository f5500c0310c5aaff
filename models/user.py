"""User model definition."""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy.orm import validates

from . import db
from .base import ResourceMixin


USER_ROLES = ("user", "guide", "lead-guide", "admin")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72


def hash_reset_token(token: str) -> str:
    """Return the SHA-256 hex digest stored in place of a raw reset token."""

    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class User(ResourceMixin, db.Model):
    """Represents a platform user."""

    __tablename__ = "users"

    PUBLIC_FIELDS = ("id", "name", "email", "photo", "role", "created_at")
    WRITABLE_FIELDS = ("name", "email", "photo", "role")

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    photo = db.Column(db.String(255), nullable=False, default="default.jpg")
    role = db.Column(
        db.Enum(*USER_ROLES, name="user_role"),
        nullable=False,
        default="user",
        server_default=db.text("'user'"),
    )
    password_hash = db.Column(db.String(255), nullable=False)
    password_changed_at = db.Column(db.DateTime, nullable=True)
    password_reset_token = db.Column(db.String(64), nullable=True, index=True)
    password_reset_expires = db.Column(db.DateTime, nullable=True)
    active = db.Column(
        db.Boolean,
        nullable=False,
        default=True,
        server_default=db.text("true"),
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    reviews = db.relationship(
        "Review",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    _pending_password = None
    _pending_password_confirm = None
    _password_staged = False

    @classmethod
    def visible_query(cls):
        """Soft-deleted users never show up in lookups."""

        return cls.query.filter(cls.active.is_(True))

    @classmethod
    def find_by_email(cls, email: str | None) -> "User | None":
        return cls.visible_query().filter(cls.email == (email or "").strip().lower()).first()

    @validates("email")
    def _normalize_email(self, key, value):
        return (value or "").strip().lower()

    @validates("name")
    def _strip_name(self, key, value):
        return value.strip() if isinstance(value, str) else value

    # Passwords -----------------------------------------------------------

    def stage_password(self, password: str | None, confirm: str | None) -> None:
        """Record a new plaintext password to validate and hash before saving."""

        self._pending_password = password
        self._pending_password_confirm = confirm
        self._password_staged = True

    @property
    def has_pending_password(self) -> bool:
        return self._password_staged

    def set_password(self, password: str) -> None:
        """Hash and store the password."""

        rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
        self.password_hash = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)
        ).decode("utf-8")
        if self.id is not None:
            # One second in the past so a token issued right after the change
            # is never older than the change itself.
            self.password_changed_at = datetime.utcnow() - timedelta(seconds=1)
        self._pending_password = None
        self._pending_password_confirm = None
        self._password_staged = False

    def apply_pending_password(self) -> None:
        if self._password_staged and self._pending_password is not None:
            self.set_password(self._pending_password)

    def check_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""

        if not password or not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))
        except ValueError:
            return False

    def changed_password_after(self, issued_at: int) -> bool:
        """Return True if the password changed after a token's ``iat``."""

        if self.password_changed_at is None:
            return False
        changed = int(self.password_changed_at.replace(tzinfo=timezone.utc).timestamp())
        return issued_at < changed

    # Password reset ------------------------------------------------------

    def create_password_reset_token(self, expires_in: timedelta = timedelta(minutes=10)) -> str:
        """Store a hashed reset token and return the raw one."""

        raw_token = secrets.token_hex(32)
        self.password_reset_token = hash_reset_token(raw_token)
        self.password_reset_expires = datetime.utcnow() + expires_in
        return raw_token

    def clear_password_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None

    # Serialization / validation ------------------------------------------

    def assign(self, data: dict, fields=None) -> None:
        """Copy writable keys; ``password`` is staged rather than stored."""

        allowed = set(fields if fields is not None else self.WRITABLE_FIELDS)
        super().assign(
            {k: v for k, v in data.items() if k not in ("password", "password_confirm")},
            fields=allowed,
        )
        if "password" in allowed and "password" in data:
            self.stage_password(data.get("password"), data.get("password_confirm"))

    def serialize(self, expand=()) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "photo": self.photo,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def summary(self) -> dict:
        """Compact representation embedded in reviews."""

        return {"id": self.id, "name": self.name, "photo": self.photo}

    def validate(self) -> list[str]:
        errors = []
        if not self.name:
            errors.append("Please tell us your name!")
        if not self.email:
            errors.append("Please provide your email")
        else:
            try:
                validate_email(self.email, check_deliverability=False)
            except EmailNotValidError:
                errors.append("Please provide a valid email")
        if self.role is not None and self.role not in USER_ROLES:
            errors.append("Role must be one of: {}.".format(", ".join(USER_ROLES)))

        if self._password_staged:
            password = self._pending_password
            if not password:
                errors.append("Please provide a password")
            elif not isinstance(password, str) or len(password) < PASSWORD_MIN_LENGTH:
                errors.append(
                    f"Password must have at least {PASSWORD_MIN_LENGTH} characters"
                )
            elif len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
                errors.append(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
            if not self._pending_password_confirm:
                errors.append("Please confirm your password")
            elif self._pending_password_confirm != password:
                errors.append("Passwords are not the same!")
        elif not self.password_hash:
            errors.append("Please provide a password")
        return errors

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User {self.email}>"
