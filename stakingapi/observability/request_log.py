# MIT License
# Copyright (c) 2025 Hashborn

import logging
import uuid
from typing import Optional

logger = logging.getLogger("stakingapi.request")


class RequestLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the request id it belongs to."""

    def process(self, msg, kwargs):
        return f"[{self.extra['request_id']}] {msg}", kwargs


def request_logger(request_id: Optional[str] = None) -> RequestLogAdapter:
    """Builds the logging handle for one request. Nothing is shared between requests."""
    return RequestLogAdapter(logger, {"request_id": request_id or uuid.uuid4().hex[:16]})
