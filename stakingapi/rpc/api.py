# MIT License
# Copyright (c) 2025 Hashborn

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from typing import List, Optional
from ..core.service import StakingService
from ..observability import metrics_registry, request_logger
from ..protocol.config.server import ServerConfig
from ..protocol.types.common import StakingApiError
import logging

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(service: StakingService, allowed_origins: Optional[List[str]] = None) -> FastAPI:
    app = FastAPI(title="Staking API")
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(StakingApiError)
    async def staking_api_error_handler(request: Request, exc: StakingApiError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path}: {exc.code.value}: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    def _log(request: Request):
        return request_logger(request.headers.get(REQUEST_ID_HEADER))

    def _service(request: Request) -> StakingService:
        return request.app.state.service

    @app.get("/healthcheck")
    def healthcheck(request: Request):
        if not _service(request).health_check():
            return JSONResponse(
                status_code=503,
                content={"error": {"code": "SERVICE_UNAVAILABLE", "message": "Storage is unreachable"}},
            )
        return {"data": "Server is up and running"}

    @app.get("/v1/staker/delegations")
    def get_staker_delegations(request: Request, staker_btc_pk: str = "", pagination_key: str = ""):
        """Delegations of a staker, newest first, one page at a time."""
        page = _service(request).delegations_by_staker_pk(staker_btc_pk, pagination_key, log=_log(request))
        body = {"data": [d.model_dump() for d in page.items]}
        if page.next_key:
            body["pagination_key"] = page.next_key
        return body

    @app.get("/v1/finality-provider/staker-count")
    def get_staker_count_by_finality_provider(request: Request, finality_provider_pk_hex: str = ""):
        """Number of distinct stakers with a non-unbonded delegation to the finality provider."""
        count = _service(request).staker_count_by_finality_provider(finality_provider_pk_hex, log=_log(request))
        return {"data": count}

    @app.get("/v1/finality-provider/delegations-count")
    def get_delegations_count_by_finality_provider(request: Request, finality_provider_pk_hex: str = ""):
        count = _service(request).delegations_count_by_finality_provider(finality_provider_pk_hex, log=_log(request))
        return {"data": count}

    @app.get("/v1/staker/count")
    def get_delegations_count_by_staker(request: Request, staker_btc_pk: str = "",
                                        finality_provider_pk_hex: str = ""):
        # Older clients send the staker key under finality_provider_pk_hex
        staker_pk = staker_btc_pk or finality_provider_pk_hex
        count = _service(request).delegations_count_by_staker_pk(staker_pk, log=_log(request))
        return {"data": count}

    @app.get("/v1/staker/delegation/check")
    def check_staker_delegation_exist(request: Request, address: str = "", timeframe: str = ""):
        """
        Whether a staker (by Taproot address) has an active delegation.

        timeframe "today" only considers delegations created since 00:00 UTC.
        """
        exist = _service(request).check_staker_has_active_delegation(address, timeframe, log=_log(request))
        return {"data": exist}

    @app.get("/v1/delegation")
    def get_delegation_by_tx_hash(request: Request, staking_tx_hash_hex: str = ""):
        delegation = _service(request).delegation_by_tx_hash(staking_tx_hash_hex, log=_log(request))
        return {"data": delegation.model_dump()}

    @app.get("/metrics")
    def get_metrics():
        """Prometheus metrics endpoint."""
        return Response(content=generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)

    return app


def start_rpc_server(service: StakingService, server_config: ServerConfig):
    import uvicorn
    app = create_app(service, server_config.allowed_origins)
    uvicorn.run(
        app,
        host=server_config.host,
        port=server_config.port,
        timeout_keep_alive=int(server_config.idle_timeout),
        log_level=logging.getLevelName(server_config.logging_level).lower(),
    )
