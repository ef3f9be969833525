from __future__ import annotations

from typing import Annotated, Any

from litestar import Litestar, Request, get, post, put
from litestar.config.cors import CORSConfig
from litestar.params import Parameter
from litestar.plugins.prometheus import PrometheusConfig, PrometheusController
from litestar.response import Response

from .errors import (
    AccessDenied,
    BackendError,
    ChannelNotFound,
    PartstreamError,
    RangeOutOfBounds,
)
from .service import TransferService

prometheus_config = PrometheusConfig(app_name="partstream", prefix="partstream")


def _error_response(request: Request, exc: Exception) -> Response:
    if isinstance(exc, ChannelNotFound):
        status_code = 404
    elif isinstance(exc, AccessDenied):
        status_code = 403
    elif isinstance(exc, RangeOutOfBounds):
        status_code = 416
    elif isinstance(exc, BackendError):
        status_code = 502
    else:
        status_code = 500
    return Response(content={"detail": str(exc)}, status_code=status_code)


def create_app(service: TransferService | None = None) -> Litestar:
    """Create the partstream ASGI application."""
    service = service or TransferService.from_env()

    @get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @post("/download", status_code=200)
    async def download(request: Request, data: dict[str, Any]) -> Response:
        return await service.download(data, request.headers.get("range"))

    @put("/upload/{filename:str}", request_max_body_size=None)
    async def upload(
        request: Request,
        filename: Annotated[str, Parameter(description="Name of the stored file")],
        channel: Annotated[
            str | None,
            Parameter(query="channel", required=False, description="Target channel"),
        ] = None,
    ) -> dict[str, Any]:
        return await service.upload(filename, channel, request.stream())

    async def startup(app: Litestar) -> None:
        await service.startup()

    async def shutdown(app: Litestar) -> None:
        await service.shutdown()

    cors_config = CORSConfig(
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
    )

    return Litestar(
        route_handlers=[health, download, upload, PrometheusController],
        on_startup=[startup],
        on_shutdown=[shutdown],
        cors_config=cors_config,
        middleware=[prometheus_config.middleware],
        exception_handlers={PartstreamError: _error_response},
    )


app = create_app()
