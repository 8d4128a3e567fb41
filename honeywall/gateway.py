"""
Ingestion gateway – turns one sensor HTTP request into stored events.

Checks run in a fixed order and stop at the first failure:

  1. credential      → 401
  2. rate limit      → 429
  3. method (POST)   → 405
  4. body size       → 413  (before any JSON parsing)
  5. batch size      → 400
  6. record checks   → 400  (whole batch rejected, nothing stored)
  7. atomic insert   → 500  (generic message, detail logged only)

The gateway is transport-agnostic: `handle()` takes the raw pieces of a
request and returns `(status, body)`; `main.py` adapts it to FastAPI.
"""
from __future__ import annotations

import hmac
import json
import logging
import time
from typing import Any

from .config import Settings
from .db import EventStore
from .errors import (
    BAD_JSON,
    BATCH_TOO_LARGE,
    AuthenticationError,
    IngestError,
    MethodNotAllowedError,
    PayloadTooLargeError,
    RateLimitError,
    ValidationError,
)
from .models import IngestResult
from .ratelimit import RateLimiter
from .validator import validate_record

logger = logging.getLogger("honeywall.gateway")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-api-key",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Non-standard JSON constant {name}")


class IngestionGateway:
    def __init__(self, settings: Settings, limiter: RateLimiter, store: EventStore) -> None:
        self.settings = settings
        self.limiter = limiter
        self.store = store

    async def handle(
        self,
        method: str,
        credential: str | None,
        body: bytes,
        content_length: int | None = None,
    ) -> tuple[int, dict[str, Any] | None]:
        if method.upper() == "OPTIONS":
            return 200, None
        try:
            result = await self._process(method.upper(), credential, body, content_length)
            return 200, result.model_dump()
        except IngestError as exc:
            return exc.status_code, exc.to_body()
        except Exception as exc:
            logger.exception("Error processing request: %s", exc)
            return 500, IngestError().to_body()

    def authenticate(self, credential: str | None) -> str:
        expected = self.settings.api_key
        if not credential or not expected or not hmac.compare_digest(
            credential.encode("utf-8"), expected.encode("utf-8")
        ):
            logger.error("Unauthorized: invalid or missing API key")
            raise AuthenticationError()
        return credential

    async def _process(
        self,
        method: str,
        credential: str | None,
        body: bytes,
        content_length: int | None,
    ) -> IngestResult:
        key = self.authenticate(credential)

        if not self.limiter.allow(key):
            logger.warning("Rate limit exceeded for API key")
            raise RateLimitError()

        if method != "POST":
            raise MethodNotAllowedError()

        limit = self.settings.max_payload_size
        if (content_length is not None and content_length > limit) or len(body) > limit:
            logger.warning("Request too large: %s bytes", content_length or len(body))
            raise PayloadTooLargeError()

        entries = self.parse_body(body)
        if len(entries) > self.settings.max_batch_size:
            logger.warning("Batch too large: %d entries", len(entries))
            raise ValidationError(
                BATCH_TOO_LARGE,
                f"Batch size exceeds maximum of {self.settings.max_batch_size} entries",
            )

        now = time.time()
        records = [validate_record(entry, now) for entry in entries]

        stored = await self.store.insert_events(records)
        logger.info("Stored %d honeypot log(s)", len(stored))
        return IngestResult(
            message=f"Stored {len(stored)} log entry(ies)",
            ids=[e.id for e in stored],
        )

    @staticmethod
    def parse_body(body: bytes) -> list[Any]:
        try:
            payload = json.loads(body, parse_constant=_reject_constant)
        except (ValueError, UnicodeDecodeError, RecursionError) as exc:
            raise ValidationError(BAD_JSON, "Request body must be valid JSON") from exc
        if isinstance(payload, list):
            return payload
        return [payload]
