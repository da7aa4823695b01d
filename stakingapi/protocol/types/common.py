# MIT License
# Copyright (c) 2025 Hashborn

from enum import Enum
from typing import Optional


class DelegationState(str, Enum):
    ACTIVE = "active"
    UNBONDING_REQUESTED = "unbonding_requested"
    UNBONDING = "unbonding"
    UNBONDED = "unbonded"    # Terminal, excluded from counts
    WITHDRAWN = "withdrawn"


class Timeframe(str, Enum):
    NONE = ""
    TODAY = "today"


class ErrorCode(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_SERVICE_ERROR = "INTERNAL_SERVICE_ERROR"


class StakingApiError(Exception):
    """Base of every error the query layer hands to the transport."""
    code: ErrorCode = ErrorCode.INTERNAL_SERVICE_ERROR
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": {"code": self.code.value, "message": self.message}}


# --- Client errors (never retried) ---

class ValidationError(StakingApiError):
    code = ErrorCode.BAD_REQUEST
    status_code = 400


class InvalidPublicKey(ValidationError):
    pass


class InvalidAddress(ValidationError):
    pass


class InvalidPaginationKey(ValidationError):
    pass


class InvalidTimeframe(ValidationError):
    pass


class InvalidTxHash(ValidationError):
    pass


class NotFound(StakingApiError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


# --- Server errors ---

class UpstreamFailure(StakingApiError):
    code = ErrorCode.INTERNAL_SERVICE_ERROR
    status_code = 500


class UpstreamQueryFailed(UpstreamFailure):
    """Storage could not complete a fetch. The message stays generic."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        super().__init__("Failed to query delegations, please try again later")
        self.operation = operation
        self.cause = cause
