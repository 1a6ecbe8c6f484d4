"""
Best Shot Backend — Image Fetcher
===================================

What:  Downloads photo images from the image host for the PDF export.
How:   httpx.AsyncClient, tenacity retries with exponential backoff + jitter
       for transient failures, and a circuit breaker around the host.

Completion barrier:
    fetch_all() starts every download at once and returns only after each
    one has either produced a decoded image or definitively failed. The
    exporter renders pages only after that point, so no page is rasterized
    while one of its images is still loading.

Failure semantics:
    A failed image is returned as None and logged. The exporter draws a
    labelled placeholder in its place; the export itself does not fail.
"""

import asyncio
import io
import logging
from typing import List, Optional, Sequence

import httpx
from PIL import Image, UnidentifiedImageError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from bestshot.config import settings
from bestshot.exceptions import CircuitBreakerOpenError
from bestshot.services.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

# Longest edge kept after decoding; pages never draw photos larger than this
MAX_IMAGE_EDGE = 2000


def _is_transient(exc: BaseException) -> bool:
    """Network errors, 429 and 5xx are worth retrying; 4xx are not."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, httpx.TransportError)


def _decode(content: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(content))
    image.load()
    image = image.convert("RGB")
    image.thumbnail((MAX_IMAGE_EDGE, MAX_IMAGE_EDGE))
    return image


class ImageFetcher:
    """Concurrent, resilient image downloads for one export at a time."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or settings.image_fetch_timeout
        # Injected in tests (httpx.MockTransport)
        self._transport = transport
        self.circuit_breaker = CircuitBreaker(
            name="image-host",
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    async def fetch_all(self, urls: Sequence[str]) -> List[Optional[Image.Image]]:
        """Download every url concurrently; results keep the input order."""
        if not urls:
            return []
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            results = await asyncio.gather(*(self.fetch(client, url) for url in urls))

        loaded = sum(1 for image in results if image is not None)
        logger.info("Fetched %d/%d export images", loaded, len(urls))
        return list(results)

    async def fetch(self, client: httpx.AsyncClient, url: str) -> Optional[Image.Image]:
        try:
            self.circuit_breaker.can_execute()
        except CircuitBreakerOpenError as e:
            logger.warning("Skipping %s: %s", url, e.message)
            return None

        try:
            content = await self._download(client, url)
        except httpx.HTTPError as e:
            self.circuit_breaker.record_failure()
            logger.warning("Image download failed for %s: %s", url, str(e))
            return None

        self.circuit_breaker.record_success()

        try:
            return await asyncio.to_thread(_decode, content)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning("Image at %s could not be decoded: %s", url, str(e))
            return None

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            multiplier=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=0.5,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes:
        response = await client.get(url)
        response.raise_for_status()
        return response.content


image_fetcher = ImageFetcher()
