# MIT License
# Copyright (c) 2025 Hashborn

"""
Observability Module

Provides metrics and request-scoped logging for the staking API.
"""

from .metrics import metrics_registry, track_request, observe_scanned
from .request_log import request_logger

__all__ = ['metrics_registry', 'track_request', 'observe_scanned', 'request_logger']
