# ============================================================================
# src/exam_pipeline/extractors/extraction_client.py
# ============================================================================
"""
Extraction Service Client

Sends one file as multipart/form-data to the extraction endpoint and turns
whatever comes back into an ExtractionOutcome:

- non-2xx                              -> ExtractionFailure(error | details | "server error N")
- status == "image_processing_failed"  -> ImageQualityFailure(message, suggestion)
- success and a data mapping           -> ExtractionSuccess(data)
- warning without data                 -> ExtractionWarning(warning)
- 2xx with only an error               -> ExtractionFailure(error)
- anything else                        -> ExtractionFailure("invalid server response")

Network errors and timeouts become ExtractionFailure; submit() never raises.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import aiohttp

from ..config import extraction_settings
from ..core.models import (
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionSuccess,
    ExtractionWarning,
    ImageQualityFailure,
)
from ..utils.exceptions import BlobResolutionError
from ..utils.file_utils import guess_mime_type

logger = logging.getLogger(__name__)

IMAGE_PROCESSING_FAILED = "image_processing_failed"
INVALID_RESPONSE = "invalid server response"


class ExtractionClient:
    """
    Async client for the extraction service.

    Config options:
        endpoint: Extraction URL (default: EXTRACTION_ENDPOINT)
        timeout: Request timeout in seconds (default: EXTRACTION_TIMEOUT_SECONDS)
        extract_type: Value of the extractType form field (default: "exam")
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        extract_type: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.endpoint = endpoint or extraction_settings.EXTRACTION_ENDPOINT
        self.timeout = timeout or extraction_settings.EXTRACTION_TIMEOUT_SECONDS
        self.extract_type = extract_type or extraction_settings.EXTRACT_TYPE

        # HTTP session (created lazily, tied to event loop)
        self._session = session
        self._owns_session = session is None
        self._session_loop: Optional[asyncio.AbstractEventLoop] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session for current event loop."""
        if not self._owns_session:
            return self._session

        current_loop = asyncio.get_running_loop()
        needs_new_session = (
            self._session is None
            or self._session.closed
            or self._session_loop is not current_loop
        )

        if needs_new_session:
            if self._session is not None and not self._session.closed:
                await self._session.close()
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._session_loop = current_loop

        return self._session

    async def close(self):
        """Close HTTP session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None
            self._session_loop = None

    async def __aenter__(self) -> "ExtractionClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    async def submit(
        self,
        blob: bytes,
        file_name: str,
        content_type: Optional[str] = None,
    ) -> ExtractionOutcome:
        """
        Submit one file for structured extraction.

        Args:
            blob: File bytes
            file_name: Name sent with the file part
            content_type: MIME type of the file part (guessed when None)

        Returns:
            ExtractionOutcome
        """
        form = aiohttp.FormData()
        form.add_field(
            "file",
            blob,
            filename=file_name,
            content_type=content_type or guess_mime_type(file_name),
        )
        form.add_field("extractType", self.extract_type)

        logger.info(f"Submitting {file_name!r} ({len(blob)} bytes) to {self.endpoint}")

        try:
            session = await self._get_session()
            async with session.post(
                self.endpoint,
                data=form,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                status = response.status
                text = await response.text()

        except asyncio.TimeoutError:
            logger.error(f"Extraction request timed out after {self.timeout}s")
            return ExtractionFailure(f"request timed out after {self.timeout:g}s")
        except aiohttp.ClientError as e:
            logger.error(f"Extraction request failed: {e}")
            return ExtractionFailure(f"network error: {e}")
        except Exception as e:
            logger.error(f"Extraction request failed unexpectedly: {e}")
            return ExtractionFailure(str(e) or type(e).__name__)

        body = _parse_body(text)
        outcome = classify_response(status, body)
        logger.info(f"Extraction response {status} -> {outcome.kind.value}")
        return outcome

    async def fetch_bytes(self, url: str) -> bytes:
        """
        Download a file referenced by URL.

        Raises:
            BlobResolutionError: On non-2xx status, timeout or network error
        """
        if url.startswith("file:"):
            return await asyncio.to_thread(_read_file_url, url)

        try:
            session = await self._get_session()
            async with session.get(url) as response:
                if response.status >= 400:
                    raise BlobResolutionError(
                        f"Failed to fetch file: HTTP {response.status}"
                    )
                return await response.read()
        except asyncio.TimeoutError as e:
            raise BlobResolutionError(f"Timed out fetching {url}") from e
        except aiohttp.ClientError as e:
            raise BlobResolutionError(f"Failed to fetch file: {e}") from e


def _parse_body(text: str) -> Any:
    try:
        return json.loads(text) if text else None
    except json.JSONDecodeError:
        logger.warning(f"Extraction service returned non-JSON body: {text[:200]!r}")
        return None


def classify_response(status: int, body: Any) -> ExtractionOutcome:
    """Map an HTTP status and decoded JSON body to an outcome."""
    payload = body if isinstance(body, Mapping) else {}

    if not 200 <= status < 300:
        error = payload.get("error") or payload.get("details") or f"server error {status}"
        return ExtractionFailure(str(error))

    if payload.get("status") == IMAGE_PROCESSING_FAILED:
        return ImageQualityFailure(
            message=str(payload.get("message") or "Image could not be processed"),
            suggestion=payload.get("suggestion") or None,
        )

    data = payload.get("data")
    if payload.get("success") is True and isinstance(data, Mapping):
        return ExtractionSuccess(dict(data))

    if payload.get("warning") and not data:
        return ExtractionWarning(str(payload["warning"]))

    if payload.get("error"):
        return ExtractionFailure(str(payload["error"]))

    return ExtractionFailure(INVALID_RESPONSE)


def _read_file_url(url: str) -> bytes:
    path = Path(url2pathname(urlparse(url).path))
    try:
        return path.read_bytes()
    except OSError as e:
        raise BlobResolutionError(f"Failed to read {path}: {e}") from e
