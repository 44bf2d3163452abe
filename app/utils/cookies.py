from typing import Optional
from fastapi import Response
from app.config.settings import Settings, settings as default_settings

AUTH_COOKIE_NAME = "auth_token"


class CookieUtils:
    """Utility class for managing the session cookie"""

    @staticmethod
    def _get_cookie_settings(config: Settings) -> dict:
        """Get common cookie settings based on environment"""
        return {
            "secure": config.COOKIE_SECURE or config.ENVIRONMENT == "production",
            "samesite": "lax",
            "domain": config.COOKIE_DOMAIN,
            "path": "/",
        }

    @staticmethod
    def set_auth_cookie(
        response: Response, token: str, config: Settings = default_settings
    ) -> None:
        """Set the HTTP-only session cookie on response"""
        response.set_cookie(
            key=AUTH_COOKIE_NAME,
            value=token,
            httponly=True,
            max_age=config.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
            **CookieUtils._get_cookie_settings(config),
        )

    @staticmethod
    def clear_auth_cookie(
        response: Response, config: Settings = default_settings
    ) -> None:
        """Clear the session cookie from response"""
        response.delete_cookie(
            key=AUTH_COOKIE_NAME,
            httponly=True,
            **CookieUtils._get_cookie_settings(config),
        )

    @staticmethod
    def extract_bearer_token(authorization_header: Optional[str]) -> Optional[str]:
        """Extract Bearer token from Authorization header"""
        if not authorization_header:
            return None

        if not authorization_header.startswith("Bearer "):
            return None

        return authorization_header[7:]  # Remove "Bearer " prefix
