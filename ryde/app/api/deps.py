"""
Shared endpoint dependencies and token-cookie helpers.
"""

from fastapi import Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ryde.app.core.config import settings
from ryde.app.core.dependencies import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from ryde.app.db.session import get_db
from ryde.app.services.account_service import AccountService
from ryde.app.services.mailer import Mailer, get_mailer
from ryde.app.services.media import MediaUploader, get_media_uploader


async def get_account_service(
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    media: MediaUploader = Depends(get_media_uploader),
) -> AccountService:
    return AccountService(db=db, mailer=mailer, media=media)


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.cookie_samesite,
    }


def set_token_cookies(response: Response, access_token: str, refresh_token: str) -> Response:
    options = _cookie_options()
    response.set_cookie(ACCESS_TOKEN_COOKIE, access_token,
                        max_age=settings.access_token_expire_minutes * 60, **options)
    response.set_cookie(REFRESH_TOKEN_COOKIE, refresh_token,
                        max_age=settings.refresh_token_expire_days * 24 * 3600, **options)
    return response


def clear_token_cookies(response: Response) -> Response:
    options = _cookie_options()
    response.delete_cookie(ACCESS_TOKEN_COOKIE, **options)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, **options)
    return response
