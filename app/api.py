from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from mailtrack.data import crud
from mailtrack.data.db import get_session
from mailtrack.errors import ConfigurationError, PersistenceError
from mailtrack.logging_utils import setup_debug_logging
from mailtrack.schemas import (
    DeliveryResponse,
    SendMessageRequest,
    TemplateRefreshResponse,
    TrackedMessage,
    TrackedMessageList,
)
from mailtrack.service import MessagingService
from mailtrack.setup import initialize_environment


PROJECT_ROOT = Path(__file__).resolve().parent
_config_override = os.getenv("MAILTRACK_CONFIG")
CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"

app = FastAPI(title="Mailtrack API", version="1.0.0")
debug_logger = logging.getLogger("mailtrack.debug.api")
logger = logging.getLogger("mailtrack.api")


_ERROR_CODE_MAP = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "validation_error",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "server_error",
    status.HTTP_502_BAD_GATEWAY: "delivery_failed",
    status.HTTP_503_SERVICE_UNAVAILABLE: "unavailable",
}


def _status_to_error_code(status_code: int) -> str:
    return _ERROR_CODE_MAP.get(status_code, f"http_{status_code}")


def _build_error_payload(status_code: int, detail: Any) -> Dict[str, Any]:
    code = _status_to_error_code(status_code)
    message: Optional[str] = None
    extra: Optional[Any] = None

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = detail.get("message") or detail.get("detail")
        remaining = {k: v for k, v in detail.items() if k not in {"code", "message", "detail"}}
        if remaining:
            extra = remaining
    elif isinstance(detail, list):
        extra = detail
    elif detail:
        message = str(detail)

    if message is None:
        try:
            message = HTTPStatus(status_code).phrase
        except ValueError:
            message = "Request failed"

    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if extra is not None:
        payload["error"]["details"] = extra
    return payload


@app.exception_handler(HTTPException)
async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    payload = _build_error_payload(exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    detail = {
        "code": "validation_error",
        "message": "Request validation failed",
        "fields": exc.errors(),
    }
    payload = _build_error_payload(status.HTTP_422_UNPROCESSABLE_ENTITY, detail)
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=payload)


def _to_tracked_message(row: Dict[str, Any]) -> TrackedMessage:
    message_date: datetime = row["message_date"]
    if message_date.tzinfo is None:
        message_date = message_date.replace(tzinfo=timezone.utc)
    return TrackedMessage(
        id=row["id"],
        direction="inbound" if row.get("incoming") else "outbound",
        message_date=message_date,
        from_name=row.get("from_name"),
        from_address=row.get("from_address"),
        to_address=row.get("to_address"),
        cc_address=row.get("cc_address"),
        bcc_address=row.get("bcc_address"),
        to_ids=list(row.get("to_ids") or []),
        subject=row.get("subject"),
        text_body=row.get("text_body"),
        html_body=row.get("html_body"),
        related_to_id=row.get("related_to_id"),
        template_id=row.get("template_id"),
        status=row["status"],
    )


@app.on_event("startup")
async def startup_event() -> None:
    setup_debug_logging(PROJECT_ROOT)
    app_config, resources = initialize_environment(
        config_data=yaml.safe_load(CONFIG_PATH.read_text(encoding="utf-8")),
        base_dir=PROJECT_ROOT,
    )
    app.state.app_config = app_config
    app.state.resources = resources
    app.state.session_factory = get_session
    app.state.messaging_service = MessagingService(app_config.mailtrack)
    debug_logger.info(
        "api.startup",
        extra={"database_file": str(resources["database_file"]), "transport": app_config.mailtrack.transport.kind},
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    service: MessagingService | None = getattr(app.state, "messaging_service", None)
    if service is not None:
        service.close()


def _ensure_state(request: Request) -> tuple[MessagingService, Callable[[], Session]]:
    service: Optional[MessagingService] = getattr(request.app.state, "messaging_service", None)
    session_factory = getattr(request.app.state, "session_factory", None)
    if service is None or session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application not initialized",
        )
    return service, session_factory


@app.post(
    "/messages",
    response_model=DeliveryResponse,
    summary="Build, send and track a single outbound message.",
)
def send_message(request: Request, payload: SendMessageRequest) -> DeliveryResponse:
    service, _ = _ensure_state(request)
    try:
        result = service.send_message(payload)
    except ConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.error("Message sent but tracking failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "code": "tracking_failed",
                "message": "Message sent but tracking uncertain",
                "reason": str(exc),
            },
        ) from exc

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": "delivery_failed", "message": result.detail or "Delivery failed"},
        )
    return DeliveryResponse(success=True, detail=result.detail, message_id=result.message_id)


@app.get(
    "/messages",
    response_model=TrackedMessageList,
    summary="List the most recent tracked messages, newest first.",
)
def list_messages(
    request: Request,
    limit: int = Query(crud.MAX_TRACKED_PAGE, ge=1, le=crud.MAX_TRACKED_PAGE),
) -> TrackedMessageList:
    _, session_factory = _ensure_state(request)
    session = session_factory()
    try:
        rows = crud.list_tracked_messages(session, limit=limit)
    finally:
        session.close()
    messages = [_to_tracked_message(row) for row in rows]
    return TrackedMessageList(total=len(messages), messages=messages)


@app.get(
    "/messages/{record_id}",
    response_model=TrackedMessage,
    summary="Fetch a single tracked message.",
)
def get_message(request: Request, record_id: int) -> TrackedMessage:
    _, session_factory = _ensure_state(request)
    session = session_factory()
    try:
        row = crud.get_tracked_message(session, record_id)
    finally:
        session.close()
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tracked message {record_id} not found",
        )
    return _to_tracked_message(row)


@app.post(
    "/templates/refresh",
    response_model=TemplateRefreshResponse,
    summary="Reload the template cache from the database.",
)
def refresh_templates(request: Request) -> TemplateRefreshResponse:
    service, _ = _ensure_state(request)
    return TemplateRefreshResponse(templates=service.refresh_templates())


@app.get(
    "/health",
    summary="Simple readiness probe.",
)
def health_check(request: Request) -> Dict[str, Any]:
    _ensure_state(request)
    now = datetime.now(timezone.utc)
    return {"status": "ok", "timestamp": now.isoformat()}
