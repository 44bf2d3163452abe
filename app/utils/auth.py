from datetime import timedelta
from typing import Optional, Dict, Any
import secrets
import uuid
import jwt
import bcrypt

from app.config.settings import Settings, settings as default_settings
from app.utils.datetime_utils import utc_now

# Checked when the user does not exist so a failed login costs the same either way
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=4))


class AuthUtils:
    """Authentication utilities for JWT session tokens and password hashing"""

    @staticmethod
    def hash_password(password: str, rounds: int = 10) -> str:
        """Hash a password with bcrypt"""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()

    @staticmethod
    def verify_password(password: str, password_hash: Optional[str]) -> bool:
        """Verify a password against a bcrypt hash.

        A missing hash still runs a full bcrypt check against a dummy hash.
        """
        if not password_hash:
            bcrypt.checkpw(password.encode(), _DUMMY_PASSWORD_HASH)
            return False
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode())
        except ValueError:
            return False

    @staticmethod
    def generate_registration_token() -> str:
        """Single-use bearer secret for the self-registration link (48 hex chars)"""
        return secrets.token_hex(24)

    @staticmethod
    def generate_session_token(
        user_id: str,
        email: str,
        role: str,
        config: Settings = default_settings,
    ) -> str:
        """Generate a signed session token carrying subject, email and role"""
        now = utc_now()
        expire = now + timedelta(days=config.SESSION_EXPIRE_DAYS)

        payload = {
            "sub": str(user_id),  # Subject (user ID)
            "email": email,
            "role": role,
            "iat": now,  # Issued at
            "exp": expire,  # Expiration
            "jti": str(uuid.uuid4()),  # JWT ID for uniqueness
        }

        return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    @staticmethod
    def verify_session_token(
        token: str, config: Settings = default_settings
    ) -> Optional[Dict[str, Any]]:
        """Verify and decode a session token, None when invalid or expired"""
        try:
            return jwt.decode(
                token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None
