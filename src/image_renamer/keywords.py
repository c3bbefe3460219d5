"""
Keyword extraction through the Google Gemini ``generateContent`` API.

The extractor is deliberately fail-soft: every failure path (throttling that outlasts the
retries, non-200 responses, network errors, malformed payloads) ends in an empty keyword
list. The batch processor counts an empty list as a skip, so one bad file never aborts a run.
"""

import asyncio
import json
import re
import time
from collections.abc import Awaitable, Callable
from http import HTTPStatus
from pathlib import PurePath
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field, ValidationError


if TYPE_CHECKING:
    from image_renamer.config import Settings


SleepFunc = Callable[[float], Awaitable[Any]]

MAX_KEYWORD_LENGTH = 20
DEFAULT_MIME_TYPE = "image/jpeg"
MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}
KEYWORD_PROMPT = (
    "Analyze this image and provide descriptive keywords that could be used for a filename. "
    "Return only a comma-separated list of relevant keywords (no JSON, just keywords). "
    "Focus on the main subjects, objects, colors, and setting."
)
GENERATION_CONFIG = {
    "temperature": 0.4,
    "topK": 32,
    "topP": 1,
    "maxOutputTokens": 100,
}
RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"
_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)s\s*$")


class _Part(BaseModel):
    text: str | None = None


class _Content(BaseModel):
    parts: list[_Part] = Field(default_factory=list)


class _Candidate(BaseModel):
    content: _Content | None = None


class GenerateContentResponse(BaseModel):
    """The subset of a Gemini ``generateContent`` response we read."""

    candidates: list[_Candidate] = Field(default_factory=list)

    def first_text(self) -> str | None:
        """Return the text of the first part of the first candidate, if present."""
        if not self.candidates:
            return None
        content = self.candidates[0].content
        if content is None or not content.parts:
            return None
        return content.parts[0].text


def mime_type_for(filename: str) -> str:
    """
    Map a filename's extension to the MIME type sent with the image.

    Examples:
        >>> mime_type_for("holiday.PNG")
        'image/png'
        >>> mime_type_for("scan.tiff")
        'image/jpeg'

    """
    return MIME_TYPES.get(PurePath(filename).suffix.lower(), DEFAULT_MIME_TYPE)


def parse_keywords(text: str) -> list[str]:
    """Split comma-separated model output into trimmed, lower-cased keywords under 20 chars."""
    keywords = [piece.strip().lower() for piece in text.split(",")]
    return [kw for kw in keywords if 0 < len(kw) < MAX_KEYWORD_LENGTH]


def parse_retry_delay(body: str) -> float | None:
    """
    Read the ``RetryInfo.retryDelay`` hint from a 429 error body.

    Args:
        body: Raw response text, expected to be Google's JSON error envelope.

    Returns:
        Delay in seconds, or None when the body carries no usable hint.

    """
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not isinstance(error, dict):
        return None

    for detail in error.get("details") or []:
        if not isinstance(detail, dict) or detail.get("@type") != RETRY_INFO_TYPE:
            continue
        match = _DURATION_PATTERN.match(str(detail.get("retryDelay", "")))
        if match:
            return float(match.group(1))
    return None


def build_request_body(image_b64: str, filename: str) -> dict[str, Any]:
    """Assemble the ``generateContent`` payload for a single image."""
    return {
        "contents": [
            {
                "parts": [
                    {"text": KEYWORD_PROMPT},
                    {
                        "inline_data": {
                            "mime_type": mime_type_for(filename),
                            "data": image_b64,
                        },
                    },
                ],
            },
        ],
        "generationConfig": GENERATION_CONFIG,
    }


class KeywordExtractor:
    """Turn base64 image data into filename keywords with a remote vision model."""

    def __init__(
        self,
        settings: "Settings",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Configure the extractor from explicit settings.

        Args:
            settings: Loaded application settings (API key, model, retry policy).
            transport: Optional httpx transport, used by tests to fake the API.
            sleep: Coroutine used to wait between retries.

        """
        self._api_key = settings.google_api_key
        self._url = (
            f"{settings.api_base_url.rstrip('/')}/models/{settings.model_name}:generateContent"
        )
        self._timeout = settings.request_timeout_seconds
        self._max_retries = settings.max_retries
        self._initial_backoff = settings.initial_backoff_seconds
        self._transport = transport
        self._sleep = sleep

    async def extract(self, image_b64: str, filename: str) -> list[str]:
        """
        Ask the model for keywords describing an image.

        Args:
            image_b64: Base64-encoded image bytes.
            filename: Source filename, used to pick the MIME type.

        Returns:
            Ordered keywords, or an empty list on any failure. Never raises.

        """
        if not image_b64:
            logger.warning("keyword_extraction_skipped_empty_image", file=filename)
            return []

        try:
            return await self._extract_with_retries(image_b64, filename)
        except Exception as exc:  # noqa: BLE001
            logger.error("keyword_extraction_failed", file=filename, error=str(exc))
            return []

    async def _extract_with_retries(self, image_b64: str, filename: str) -> list[str]:
        body = build_request_body(image_b64, filename)
        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key}
        backoff = self._initial_backoff

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for attempt in range(self._max_retries + 1):
                _t0 = time.perf_counter()
                try:
                    response = await client.post(self._url, json=body, headers=headers)
                except httpx.TransportError as exc:
                    logger.warning(
                        "keyword_request_transport_error",
                        file=filename,
                        attempt=attempt + 1,
                        error=str(exc),
                    )
                    wait = backoff
                else:
                    logger.debug(
                        "keyword_request_completed",
                        file=filename,
                        status=response.status_code,
                        seconds=round(time.perf_counter() - _t0, 3),
                    )
                    if response.status_code == HTTPStatus.OK:
                        return self._parse_response(response.text, filename)
                    if response.status_code != HTTPStatus.TOO_MANY_REQUESTS:
                        logger.error(
                            "keyword_request_rejected",
                            file=filename,
                            status=response.status_code,
                            body=response.text,
                        )
                        return []
                    hint = parse_retry_delay(response.text)
                    wait = backoff if hint is None else hint
                    logger.warning(
                        "keyword_request_rate_limited",
                        file=filename,
                        attempt=attempt + 1,
                        retry_delay_hint=hint,
                    )

                if attempt == self._max_retries:
                    break
                logger.info("keyword_request_retrying", file=filename, wait_seconds=wait)
                await self._sleep(wait)
                backoff *= 2

        logger.error("keyword_retries_exhausted", file=filename, retries=self._max_retries)
        return []

    @staticmethod
    def _parse_response(text: str, filename: str) -> list[str]:
        try:
            parsed = GenerateContentResponse.model_validate_json(text)
        except ValidationError as exc:
            logger.error("keyword_response_invalid", file=filename, error=str(exc))
            return []

        keywords_text = parsed.first_text()
        if keywords_text is None:
            logger.warning("keyword_response_empty", file=filename)
            return []

        keywords = parse_keywords(keywords_text)
        logger.debug("keywords_parsed", file=filename, keywords=keywords)
        return keywords
