"""FastAPI wrapper for the figsync data engine."""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from core.config import Settings, load_settings
from core.orchestrator.pipeline import build_sync_report, export_pdf, plan_export
from core.sources.figma import FigmaClient
from core.sources.sheets import SheetsRecordSource
from core.sync.field_map import FieldMap, load_field_map
from core.sync.models import Diagnostic
from core.utils.errors import ConfigError, UpstreamFetchError

load_dotenv(override=False)

app = FastAPI(title="figsync API", version="0.1.0")
logger = logging.getLogger("figsync.api")

_REQUEST_ID_HEADER = "X-Figsync-Request-Id"
_FRAME_ORDER_HEADER = "X-Figsync-Frame-Order"
_PDF_FILENAME = "proposal.pdf"


class ExportRequest(BaseModel):
    """Body of ``POST /figma-export-pdf``."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    file_key: str | None = None
    frame_ids: list[str] = Field(min_length=1)
    back_frame_name: str | None = None


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


def _cors_enabled() -> bool:
    raw = os.getenv("FIGSYNC_ENABLE_CORS", "1").strip().lower()
    return raw not in {"0", "false", "off", "no"}


def _cors_allow_origins() -> list[str]:
    raw = os.getenv("FIGSYNC_CORS_ALLOW_ORIGINS", "*")
    origins = [item.strip() for item in raw.split(",") if item.strip()]
    return origins or ["*"]


# Registered before the request id middleware so preflight responses get the header too.
if _cors_enabled():
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_allow_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=[_REQUEST_ID_HEADER, _FRAME_ORDER_HEADER, "Content-Disposition"],
    )


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(_REQUEST_ID_HEADER, request_id)
    return response


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/figma-patches", response_model=None)
async def figma_patches(request: Request, scope: str | None = None) -> JSONResponse:
    """Reconcile sheet rows with the design file and return the patch plan."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "init"

    try:
        failure_stage = "load_config"
        settings = _load_settings()
        field_map = _load_field_map(settings)
        file_key = settings.require("figma_file_key")
        scope_name = scope if scope is not None else settings.figma_target_page

        _log_event(
            logging.INFO,
            "start",
            request_id,
            endpoint="figma-patches",
            scope_name=scope_name,
            frame_limit=settings.figma_dry_run_limit,
        )

        failure_stage = "fetch_records"
        diagnostics: list[Diagnostic] = []
        records = await _record_source(settings).fetch(diagnostics=diagnostics)

        failure_stage = "fetch_document"
        async with _figma_client(settings) as client:
            tree = await client.fetch_document(file_key)

        failure_stage = "reconcile"
        report = build_sync_report(
            tree,
            records,
            scope_name=scope_name,
            field_map=field_map,
            frame_limit=settings.figma_dry_run_limit,
            file_key=file_key,
            diagnostics=diagnostics,
        )

        failure_stage = "respond"
        _log_event(
            logging.INFO,
            "done",
            request_id,
            endpoint="figma-patches",
            record_count=len(records),
            patch_count=report.count,
            total_frames=report.total_frames,
            matched_count=report.matched_count,
            diagnostic_count=len(report.diagnostics),
            total_ms=_elapsed_ms(request_started),
        )
        return JSONResponse(
            status_code=200,
            headers={_REQUEST_ID_HEADER: request_id},
            content=report.model_dump(mode="json", by_alias=True),
        )
    except Exception as exc:  # noqa: BLE001
        return _failure_response(exc, request_id, failure_stage, request_started)


@app.post("/figma-export-pdf", response_model=None)
async def figma_export_pdf(request: Request) -> Response:
    """Export matched frames framed by cover/toc/back pages as one merged PDF."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "init"

    try:
        failure_stage = "validate_inputs"
        export_request = await _load_export_request(request)

        failure_stage = "load_config"
        settings = _load_settings()
        file_key = export_request.file_key or settings.figma_file_key
        if not file_key:
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="fileKey is required",
                detail={"field": "fileKey"},
            )
        back_name = export_request.back_frame_name or settings.back_frame_name

        _log_event(
            logging.INFO,
            "start",
            request_id,
            endpoint="figma-export-pdf",
            requested_count=len(export_request.frame_ids),
            back_frame_name=back_name,
        )

        async with _figma_client(settings) as client:
            failure_stage = "fetch_document"
            tree = await client.fetch_document(file_key)

            failure_stage = "assemble"
            plan = plan_export(tree, export_request.frame_ids, back_name=back_name)

            failure_stage = "export_pdf"
            pdf_bytes = await export_pdf(
                client,
                file_key,
                plan.ordered_ids,
                max_concurrency=settings.max_download_concurrency,
            )

        failure_stage = "respond"
        _log_event(
            logging.INFO,
            "done",
            request_id,
            endpoint="figma-export-pdf",
            ordered_ids=plan.ordered_ids,
            diagnostic_count=len(plan.diagnostics),
            pdf_bytes=len(pdf_bytes),
            total_ms=_elapsed_ms(request_started),
        )
        return Response(
            content=pdf_bytes,
            media_type="application/pdf",
            headers={
                "Content-Disposition": f'attachment; filename="{_PDF_FILENAME}"',
                _REQUEST_ID_HEADER: request_id,
                _FRAME_ORDER_HEADER: ",".join(plan.ordered_ids),
            },
        )
    except Exception as exc:  # noqa: BLE001
        return _failure_response(exc, request_id, failure_stage, request_started)


def _load_settings() -> Settings:
    return load_settings()


def _load_field_map(settings: Settings) -> FieldMap:
    try:
        return load_field_map(settings.field_map_path)
    except ValueError as exc:
        raise ConfigError(str(exc), key="FIGSYNC_FIELD_MAP") from exc


def _record_source(settings: Settings) -> SheetsRecordSource:
    return SheetsRecordSource(settings)


def _figma_client(settings: Settings) -> FigmaClient:
    return FigmaClient.from_settings(settings)


async def _load_export_request(request: Request) -> ExportRequest:
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be valid JSON",
            detail={"error": str(exc)},
        ) from exc

    if not isinstance(raw, dict):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be a JSON object",
        )

    try:
        return ExportRequest.model_validate(raw)
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="fileKey and a non-empty frameIds array are required",
            detail={"field": "frameIds", "error": str(exc)},
        ) from exc


def _failure_response(
    exc: Exception,
    request_id: str,
    failure_stage: str,
    request_started: float,
) -> JSONResponse:
    if isinstance(exc, ApiRequestError):
        status_code = exc.status_code
        error_code = exc.error_code
        message = exc.message
        detail = exc.detail
    elif isinstance(exc, ConfigError):
        status_code = 500
        error_code = "CONFIG_ERROR"
        message = str(exc)
        detail = {"key": exc.key}
    elif isinstance(exc, UpstreamFetchError):
        status_code = 502
        error_code = "UPSTREAM_FETCH_FAILED"
        message = str(exc)
        detail = {"source": exc.source, "upstream_status": exc.status_code}
    else:
        status_code = 500
        error_code = "INTERNAL_ERROR"
        message = "internal server error"
        detail = {"error": str(exc), "total_ms": _elapsed_ms(request_started)}

    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code=error_code,
        status_code=status_code,
        failure_stage=failure_stage,
    )
    return _error_response(
        status_code=status_code,
        error_code=error_code,
        message=message,
        request_id=request_id,
        detail=detail,
    )


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={_REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
