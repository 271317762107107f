# Overview: Credential check and user registration; bcrypt password hashing.

"""
Authentication Service

Only a credential check: there are no sessions or tokens here. A successful
login returns the user's public fields and the client keeps them.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with uppercase, lowercase, digit and special char
- Username uniqueness is enforced by the users table (uq_users_username)
"""

from __future__ import annotations

import re

import bcrypt
from sqlalchemy import select

from ..errors import AuthenticationError, ConflictError, ValidationError
from ..models import User
from ..models.auth import USER_ROLES
from .ledger_store import LedgerStore


BCRYPT_ROUNDS = 12


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise ValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise ValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise ValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise ValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    # bcrypt.checkpw is timing-safe; a malformed stored hash is a plain mismatch
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def register_user(store: LedgerStore, payload: dict | None, *, rounds: int = BCRYPT_ROUNDS) -> User:
    """
    Create a user. Raises ValidationError for bad input, ConflictError when the
    username is taken.
    """
    payload = payload or {}
    for field in ("username", "password", "role"):
        if payload.get(field) is not None and not isinstance(payload[field], str):
            raise ValidationError(f"{field} must be a string")
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    role = payload.get("role") or "engineer"

    if not username:
        raise ValidationError("username is required")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    password_hash = hash_password(password, rounds=rounds)

    with store.unit_of_work("register_user") as session:
        existing = session.execute(select(User.id).filter_by(username=username)).scalar_one_or_none()
        if existing is not None:
            raise ConflictError("Username already exists", details={"username": username})
        user = User(username=username, password_hash=password_hash, role=role)
        session.add(user)
        session.flush()
        return user


def authenticate(store: LedgerStore, username: str | None, password: str | None) -> User:
    """Return the matching user or raise AuthenticationError."""
    if not isinstance(username, str) or not isinstance(password, str):
        raise AuthenticationError("Invalid credentials")
    if not username or not password:
        raise AuthenticationError("Invalid credentials")
    user = store.session.execute(select(User).filter_by(username=username.strip())).scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    return user
