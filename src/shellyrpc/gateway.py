from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, HTTPException
from fastapi.responses import Response

from shellyrpc.config import GatewayConfig
from shellyrpc.correlator import RpcCorrelator
from shellyrpc.errors import RpcError
from shellyrpc.logging_setup import configure_logging
from shellyrpc.schemas import HealthResponse, RpcCallRequest, RpcCallResponse, RpcErrorDetail
from shellyrpc.telemetry import Telemetry
from shellyrpc.transport import StubTransport, Transport

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: GatewayConfig
    telemetry: Telemetry
    transport: Transport
    correlator: RpcCorrelator


def _build_services(config: GatewayConfig, transport: Transport | None) -> Services:
    telemetry = Telemetry()
    transport = transport or StubTransport()
    return Services(
        config=config,
        telemetry=telemetry,
        transport=transport,
        correlator=RpcCorrelator(
            client_id=config.client_id,
            transport=transport,
            config=config.correlator,
            telemetry=telemetry,
        ),
    )


def create_app(config: GatewayConfig | None = None, transport: Transport | None = None) -> FastAPI:
    app_config = config or GatewayConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        services = _build_services(config=app_config, transport=transport)
        app.state.services = services
        logger.info(
            "rpc gateway ready client_id=%s limit_requests_in_flight=%d",
            app_config.client_id,
            services.correlator.limit_requests_in_flight,
        )
        yield
        if services.correlator.in_flight_count or services.correlator.pending_count:
            logger.warning(
                "shutting down with %d in flight and %d pending calls",
                services.correlator.in_flight_count,
                services.correlator.pending_count,
            )

    app = FastAPI(title="Shelly RPC Gateway", version="0.1.0", lifespan=lifespan)

    @app.post("/v1/rpc", response_model=RpcCallResponse)
    async def rpc(request: RpcCallRequest) -> RpcCallResponse:
        services: Services = app.state.services
        try:
            result = await services.correlator.call(
                request.method,
                request.params,
                timeout=services.config.call_timeout_seconds,
            )
        except RpcError as exc:
            raise HTTPException(
                status_code=502,
                detail=RpcErrorDetail(code=exc.code, message=exc.message).model_dump(),
            ) from exc
        except asyncio.TimeoutError as exc:
            raise HTTPException(status_code=504, detail="rpc call timeout") from exc

        return RpcCallResponse(method=request.method, result=result)

    @app.get("/metrics")
    async def metrics() -> Response:
        body, content_type = Telemetry.scrape()
        return Response(content=body, media_type=content_type)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        services: Services = app.state.services
        return HealthResponse(
            status="ok",
            client_id=services.correlator.client_id,
            pending=services.correlator.pending_count,
            in_flight=services.correlator.in_flight_count,
            limit_requests_in_flight=services.correlator.limit_requests_in_flight,
        )

    return app
