"""
Avatar storage on the external image host (Cloudinary).

Uploads go through a local temp file: the multipart upload is spooled to
`upload_temp_dir`, pushed to the image host, and the temp file is removed
whether or not the upload succeeded.
"""

import hashlib
import logging
import os
import re
import secrets
import shutil
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from ryde.app.core.config import settings
from ryde.app.core.reliability import CircuitBreaker, media_circuit_breaker

logger = logging.getLogger("ryde.media")

CLOUDINARY_API_BASE = "https://api.cloudinary.com/v1_1"
_VERSION_SEGMENT = re.compile(r"^v\d+$")


def _copy_upload(upload: UploadFile, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    upload.file.seek(0)
    with destination.open("wb") as out:
        shutil.copyfileobj(upload.file, out)


async def save_upload_to_temp(upload: Optional[UploadFile], fieldname: str = "avatar") -> Optional[str]:
    """Spool an uploaded file to the temp directory; returns its path or None."""
    if upload is None or not upload.filename:
        return None
    suffix = Path(upload.filename).suffix.lower()
    unique = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
    destination = Path(settings.upload_temp_dir) / f"{fieldname}-{unique}{suffix}"
    await run_in_threadpool(_copy_upload, upload, destination)
    return str(destination)


def remove_local_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove temp file %s", path)


def public_id_from_url(url: Optional[str]) -> Optional[str]:
    """
    Recover the image public id from a delivery URL.

    ``https://res.cloudinary.com/<cloud>/image/upload/v1712/ryde-uber-clone/abc.jpg``
    yields ``ryde-uber-clone/abc``.
    """
    if not url or "/upload/" not in url:
        return None
    path = url.split("/upload/", 1)[1].split("?", 1)[0]
    segments = [s for s in path.split("/") if s]
    if segments and _VERSION_SEGMENT.match(segments[0]):
        segments = segments[1:]
    if not segments:
        return None
    segments[-1] = segments[-1].rsplit(".", 1)[0]
    return "/".join(segments)


class MediaUploader:
    """Signed Cloudinary REST client."""

    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
        folder: str,
        timeout: float = 30.0,
        breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self.timeout = timeout
        self.breaker = breaker or media_circuit_breaker
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)

    def sign(self, params: Dict[str, Any]) -> str:
        """SHA-1 signature over the sorted ``key=value`` pairs plus the secret."""
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    def _signed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params, timestamp=int(time.time()))
        params["signature"] = self.sign(params)
        params["api_key"] = self.api_key
        return params

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _post(self, action: str, data: Dict[str, Any], files=None) -> Dict[str, Any]:
        url = f"{CLOUDINARY_API_BASE}/{self.cloud_name}/image/{action}"
        async with self._client() as client:
            response = await client.post(url, data=data, files=files)
            response.raise_for_status()
            return response.json()

    async def upload(self, local_path: Optional[str]) -> Optional[str]:
        """
        Upload an image and return its durable HTTPS URL.

        Never raises: any failure is logged and yields None. The local file is
        always removed.
        """
        if not local_path:
            return None
        try:
            if not self.configured:
                logger.warning("Media host not configured; dropping upload %s", local_path)
                return None
            content = await run_in_threadpool(Path(local_path).read_bytes)
            data = self._signed({"folder": self.folder})
            files = {"file": (Path(local_path).name, content)}
            result = await self.breaker.call(self._post, "upload", data, files)
            url = result.get("secure_url") or result.get("url")
            logger.info("Uploaded avatar as %s", result.get("public_id"))
            return url
        except Exception:
            logger.exception("Avatar upload failed")
            return None
        finally:
            await run_in_threadpool(remove_local_file, local_path)

    async def destroy(self, url: Optional[str]) -> bool:
        """Delete a previously uploaded image given its stored URL."""
        public_id = public_id_from_url(url)
        if not public_id or not self.configured:
            return False
        try:
            result = await self.breaker.call(self._post, "destroy", self._signed({"public_id": public_id}))
        except Exception:
            logger.exception("Could not delete remote avatar %s", public_id)
            return False
        return result.get("result") == "ok"


media_uploader = MediaUploader(
    cloud_name=settings.cloudinary_cloud_name,
    api_key=settings.cloudinary_api_key,
    api_secret=settings.cloudinary_api_secret,
    folder=settings.cloudinary_folder,
    timeout=settings.media_timeout_seconds,
)


def get_media_uploader() -> MediaUploader:
    """FastAPI dependency returning the process-wide uploader."""
    return media_uploader
