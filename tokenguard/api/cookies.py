"""Refresh token cookie parameters"""
from fastapi import Response

from tokenguard.config import settings

COOKIE_PATH = "/"


def get_cookie_params() -> dict:
    """Common cookie parameters."""
    return {
        "path": COOKIE_PATH,
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": settings.COOKIE_SAMESITE,
    }


def set_refresh_cookie(response: Response, refresh_token: str, max_age: int) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        max_age=max(max_age, 1),
        **get_cookie_params(),
    )


def clear_refresh_cookie(response: Response) -> None:
    params = get_cookie_params()
    del params["httponly"]
    response.delete_cookie(settings.REFRESH_COOKIE_NAME, **params)
