"""Domain errors for the booking, ledger, video and payout services.

Every error is an ``HTTPException`` so routers can let them propagate and
FastAPI renders them with the right status code.
"""

from fastapi import HTTPException


class TelecareError(HTTPException):
    """Base class for errors surfaced to API callers"""

    status_code = 400
    code = "error"

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class NotFoundError(TelecareError):
    status_code = 404
    code = "not_found"


class UnauthorizedError(TelecareError):
    status_code = 403
    code = "unauthorized"


class ValidationError(TelecareError):
    status_code = 422
    code = "validation_error"


class SlotUnavailableError(TelecareError):
    status_code = 409
    code = "slot_unavailable"


class InsufficientCreditsError(TelecareError):
    status_code = 402
    code = "insufficient_credits"


class InvalidStateError(TelecareError):
    status_code = 409
    code = "invalid_state"


class UpstreamUnavailableError(TelecareError):
    status_code = 503
    code = "upstream_unavailable"


class VideoUnavailableError(UpstreamUnavailableError):
    code = "video_unavailable"
