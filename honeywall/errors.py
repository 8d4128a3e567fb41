"""
Ingestion error taxonomy.

Each error knows the HTTP status it maps to and carries a message that is
safe to hand back to a sensor.  Internal detail (database errors, stack
traces) stays in the server log.
"""
from __future__ import annotations

# ValidationError reasons
MISSING_FIELD     = "missing-field"
BAD_IP            = "bad-ip"
BAD_PORT          = "bad-port"
BAD_RECORD        = "bad-record"
BAD_JSON          = "bad-json"
BATCH_TOO_LARGE   = "batch-too-large"
PAYLOAD_TOO_LARGE = "payload-too-large"


class IngestError(Exception):
    status_code = 500
    message = "Failed to process request"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_body(self) -> dict:
        return {"error": self.message}


class AuthenticationError(IngestError):
    status_code = 401
    message = "Unauthorized"


class RateLimitError(IngestError):
    status_code = 429
    message = "Rate limit exceeded. Try again later."


class MethodNotAllowedError(IngestError):
    status_code = 405
    message = "Method not allowed"


class ValidationError(IngestError):
    status_code = 400

    def __init__(self, reason: str, message: str) -> None:
        self.reason = reason
        super().__init__(message)


class PayloadTooLargeError(ValidationError):
    status_code = 413

    def __init__(self, message: str = "Request payload too large") -> None:
        super().__init__(PAYLOAD_TOO_LARGE, message)


class StorageError(IngestError):
    status_code = 500
    message = "Failed to store log entries"
