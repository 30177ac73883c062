"""FastAPI entry-point for the local capture dashboard bridge."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from .capture_client import CaptureClient
from .config import Settings, get_settings
from .dashboard import DashboardView
from .errors import (
    AuthenticationFailed,
    NotAuthenticated,
    RequestRejected,
    ServiceUnreachable,
    StorageUnavailable,
)
from .logging_config import configure_logging
from .state import StatusEvent

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: str
    password: str


def create_app(settings: Optional[Settings] = None, client: Optional[CaptureClient] = None) -> FastAPI:
    """Build the bridge around an explicitly injected client."""
    settings = settings or get_settings()
    client = client or CaptureClient.from_settings(settings)
    dashboard = DashboardView(
        client,
        interval_ms=settings.polling.interval_ms,
        single_flight=settings.polling.single_flight,
        queue_size=settings.ui_event_queue_size,
    )

    app = FastAPI(title="vfcapture-client", version="0.1.0")
    app.state.client = client
    app.state.dashboard = dashboard

    @app.exception_handler(AuthenticationFailed)
    async def authentication_failed_handler(request: Request, exc: AuthenticationFailed) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(exc)})

    @app.exception_handler(NotAuthenticated)
    async def not_authenticated_handler(request: Request, exc: NotAuthenticated) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(exc)})

    @app.exception_handler(ServiceUnreachable)
    async def unreachable_handler(request: Request, exc: ServiceUnreachable) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})

    @app.exception_handler(StorageUnavailable)
    async def storage_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
        logger.error("Credential storage unavailable in %s: %s", request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})

    @app.exception_handler(RequestRejected)
    async def rejected_handler(request: Request, exc: RequestRejected) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc), "upstream_status": exc.status_code, "upstream_body": exc.body},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning(f"Invalid request in {request.url.path}: {exc}")
        return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
        """Catch-all exception handler to prevent application crashes."""
        logger.exception(f"Unhandled exception in {request.url.path}: {exc}")
        return PlainTextResponse(
            f"Internal server error: {str(exc)}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    @app.on_event("startup")
    async def on_startup() -> None:
        try:
            await dashboard.mount()
            logger.info("Bridge started against %s", client.base_url)
        except Exception as e:
            logger.exception(f"Failed to start dashboard polling: {e}")

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        try:
            await dashboard.unmount()
            await client.aclose()
            logger.info("Bridge shutdown complete")
        except Exception as e:
            logger.exception(f"Error during shutdown: {e}")

    @app.get("/healthz")
    async def healthcheck() -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "authenticated": client.is_authenticated,
                "polling": dashboard.mounted,
                "last_error": dashboard.last_error,
            }
        )

    @app.post("/login")
    async def login(payload: LoginRequest) -> JSONResponse:
        snapshot = await client.login(payload.username, payload.password)
        await dashboard.publish(snapshot)
        return JSONResponse({"status": "ok", "capture": snapshot.to_dict()})

    @app.post("/logout")
    async def logout() -> JSONResponse:
        client.logout()
        return JSONResponse({"status": "ok"})

    @app.get("/status")
    async def current_status() -> JSONResponse:
        snapshot = dashboard.status
        return JSONResponse(snapshot.to_dict() if snapshot else None)

    @app.post("/captures/{action}")
    async def capture_action(action: str, payload: Optional[Dict[str, Any]] = Body(None)) -> JSONResponse:
        if action not in DashboardView.ACTIONS:
            return JSONResponse({"detail": f"unknown action {action!r}"}, status_code=status.HTTP_404_NOT_FOUND)
        ack = await dashboard.perform(action, payload)
        return JSONResponse({"status": "ok", "action": action, "ack": ack})

    @app.websocket("/ws/ui")
    async def ui_socket(ws: WebSocket) -> None:
        await ws.accept()
        queue = dashboard.register_ui()
        disconnected = asyncio.create_task(_wait_for_disconnect(ws), name="ui-ws-receiver")
        getter: Optional[asyncio.Future[StatusEvent]] = None
        try:
            while True:
                getter = asyncio.ensure_future(queue.get())
                done, _ = await asyncio.wait({getter, disconnected}, return_when=asyncio.FIRST_COMPLETED)
                if disconnected in done:
                    break
                try:
                    await ws.send_json(getter.result().to_payload())
                except Exception as e:
                    # WebSocket closed, break out of loop
                    logger.debug(f"WebSocket send failed (client disconnected): {e}")
                    break
        except asyncio.CancelledError:
            pass  # Clean shutdown
        finally:
            dashboard.unregister_ui(queue)
            for task in (getter, disconnected):
                if task is not None and not task.done():
                    task.cancel()
            try:
                await ws.close()
            except Exception:
                pass

    return app


async def _wait_for_disconnect(ws: WebSocket) -> None:
    """Read (and ignore) client messages until the socket goes away."""
    try:
        while True:
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug(f"UI websocket receive ended: {e}")


def run() -> None:
    """Serve the bridge with uvicorn using environment settings."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_directory, settings.log_retention_days)
    uvicorn.run(create_app(settings), host=settings.bridge_host, port=settings.bridge_port)


if __name__ == "__main__":
    run()
