"""
FastAPI host for the paid webhook.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .core.config import WebhookConfig
from .core.errors import FacilitatorError
from .core.webhook import (
    Facilitator,
    WebhookOrchestrator,
    WebhookRequest,
    WebhookResponse,
    WebhookState,
)

__all__ = ["create_app"]


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw.decode("utf-8", errors="replace")


def _to_http(result: WebhookResponse) -> Response:
    headers = {key: value for key, value in result.headers.items() if key.lower() != "content-type"}
    if isinstance(result.body, str):
        return PlainTextResponse(result.body, status_code=result.status_code, headers=headers)
    return JSONResponse(result.body, status_code=result.status_code, headers=headers)


def create_app(
    config: WebhookConfig,
    facilitator: Optional[Facilitator] = None,
    *,
    path: str = "/webhook",
    on_paid: Optional[Callable[[Dict[str, Any]], None]] = None,
) -> FastAPI:
    """
    Build an app serving the paid webhook on ``path`` for GET and POST.

    ``on_paid`` receives the workflow payload (headers, query, body and
    txHash) of every request that was paid for, before the response is sent.
    """
    orchestrator = WebhookOrchestrator(config, facilitator)
    app = FastAPI(docs_url=None, redoc_url=None)
    app.state.orchestrator = orchestrator

    @app.api_route(path, methods=["GET", "POST"])
    async def webhook(request: Request) -> Response:
        webhook_request = WebhookRequest(
            method=request.method,
            headers=dict(request.headers),
            query=dict(request.query_params),
            body=await _read_body(request),
        )
        try:
            result = await run_in_threadpool(orchestrator.handle, webhook_request)
        except FacilitatorError as exc:
            logging.error("Facilitator verification failed: %s", exc)
            return JSONResponse(
                {
                    "error": {
                        "errorMessage": str(exc),
                        "upstreamStatus": exc.status_code,
                        "upstreamBody": exc.body,
                    }
                },
                status_code=502,
            )
        if on_paid is not None and result.state is WebhookState.RESPONDING:
            try:
                await run_in_threadpool(on_paid, result.workflow_data)
            except Exception:  # noqa: BLE001
                # the payment is already settled, so the caller still gets its answer
                logging.exception("Paid webhook handler failed")
        return _to_http(result)

    @app.get("/health")
    async def health_check() -> dict:
        return {"status": "ok"}

    return app
