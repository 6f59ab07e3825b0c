"""
Cover image downloader.

Downloads a feed's cover image and re-hosts it: written under the media
directory when one is configured, otherwise returned inline as a base64
``data:`` URL. Failures are reported in the result rather than raised,
so the caller can fall back to the remote URL.
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
CHUNK_SIZE = 64 * 1024

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}


@dataclass
class ImageDownloadResult:
    """
    Outcome of an image download.

    Attributes:
        success: True if the image was fetched and stored
        image_url: URL to display (re-hosted URL or data URL)
        error: Reason for failure
        is_base64: True if ``image_url`` is an inline data URL
    """

    success: bool
    image_url: Optional[str] = None
    error: Optional[str] = None
    is_base64: bool = False


def is_valid_image_url(url: str) -> bool:
    """Only absolute http(s) URLs are fetched."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def file_extension(mime_type: str) -> str:
    """Map an image MIME type to a file extension, defaulting to jpg."""
    return MIME_EXTENSIONS.get(mime_type, "jpg")


def _parse_length(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value else None
    except ValueError:
        return None


class ImageStore:
    """
    Downloads cover images and stores them for display.

    Example:
        >>> store = ImageStore(media_dir=Path("data/media"), media_base_url="/media")
        >>> result = store.download_and_store(feed.image_url, podcast_id)
        >>> cover = result.image_url if result.success else feed.image_url
    """

    def __init__(
        self,
        media_dir: Optional[Path] = None,
        media_base_url: str = "/media",
        timeout: int = 30,
        user_agent: str = "RETELL-RSS-Bot/1.0",
        max_bytes: int = MAX_IMAGE_BYTES,
    ):
        self.media_dir = media_dir
        self.media_base_url = media_base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_bytes = max_bytes

    def _too_large(self) -> ImageDownloadResult:
        return ImageDownloadResult(
            success=False,
            error=f"Image file size exceeds {self.max_bytes // (1024 * 1024)}MB limit",
        )

    def _read_limited(self, response: requests.Response) -> Optional[bytes]:
        """Read the body, giving up once it exceeds ``max_bytes``."""
        chunks = []
        size = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            size += len(chunk)
            if size > self.max_bytes:
                return None
            chunks.append(chunk)
        return b"".join(chunks)

    def download_and_store(
        self,
        image_url: str,
        podcast_id: str,
        name: str = "rss-cover",
    ) -> ImageDownloadResult:
        """
        Download an image and store it under the podcast.

        Args:
            image_url: Remote image URL
            podcast_id: Podcast the image belongs to
            name: File stem for the stored image

        Returns:
            ImageDownloadResult; never raises for network or content errors
        """
        if not is_valid_image_url(image_url):
            return ImageDownloadResult(success=False, error="Invalid image URL provided")

        try:
            with requests.get(
                image_url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
                stream=True,
            ) as response:
                if not response.ok:
                    return ImageDownloadResult(
                        success=False,
                        error=f"Failed to download image: {response.status_code} {response.reason}",
                    )

                content_type = (response.headers.get("content-type") or "").split(";")[0].strip().lower()
                if not content_type.startswith("image/"):
                    return ImageDownloadResult(success=False, error="URL does not point to a valid image")

                declared = _parse_length(response.headers.get("content-length"))
                if declared is not None and declared > self.max_bytes:
                    return self._too_large()

                data = self._read_limited(response)
        except requests.exceptions.RequestException as exc:
            return ImageDownloadResult(success=False, error=f"Image download failed: {exc}")

        if data is None:
            return self._too_large()

        if self.media_dir is None:
            encoded = base64.b64encode(data).decode("ascii")
            return ImageDownloadResult(
                success=True,
                image_url=f"data:{content_type};base64,{encoded}",
                is_base64=True,
            )

        filename = f"{name}.{file_extension(content_type)}"
        target = self.media_dir / podcast_id / filename
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("Could not write image %s: %s", target, exc)
            return ImageDownloadResult(success=False, error=f"Could not store image: {exc}")

        return ImageDownloadResult(
            success=True,
            image_url=f"{self.media_base_url}/{podcast_id}/{filename}",
        )
