"""FastAPI wrapper for the MarkdownDB parse/validate/fix pipeline."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
import uuid
from typing import Any, get_args

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from core.cache.parse_cache import DEFAULT_FINGERPRINT_LENGTH, ParseCache
from core.markdowndb.parser import parse
from core.orchestrator.pipeline import PipelineOutput, apply_fix_and_revalidate, run_document
from core.utils.errors import FixChoiceError, SchemaLoadError, UnknownEntityKindError
from core.validation.models import Fix, Schema
from core.validation.registry import get_schema, list_entity_kinds
from core.validation.schema_loader import load_schema_text

app = FastAPI(title="markdowndb API", version="0.1.0")
logger = logging.getLogger("markdowndb.api")

REQUEST_ID_HEADER = "X-Markdowndb-Request-Id"

_DEFAULT_MAX_TEXT_CHARS = 1_000_000


class ParseRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str


class ValidateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: str
    kind: str | None = None
    schema_yaml: str | None = None
    entity_id: str | None = None


class FixRequest(BaseModel):
    """Fix request: either an explicit `fix` or an `index` into the current report."""

    model_config = ConfigDict(extra="forbid")

    text: str
    fix: Fix | None = None
    index: int | None = None
    choice: str | None = None
    cursor: int = 0
    kind: str | None = None
    schema_yaml: str | None = None


class PruneRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    live_ids: list[str] = Field(default_factory=list)


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


_cache_lock = threading.Lock()
_parse_cache: ParseCache | None = None


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _configure_cors(application: FastAPI) -> None:
    """Opt-in CORS for browser-based editors (MARKDOWNDB_ENABLE_CORS=1)."""

    if not _env_flag("MARKDOWNDB_ENABLE_CORS"):
        return
    origins = [
        origin.strip()
        for origin in os.getenv("MARKDOWNDB_CORS_ALLOW_ORIGINS", "").split(",")
        if origin.strip()
    ]
    raw_max_age = os.getenv("MARKDOWNDB_CORS_MAX_AGE", "600")
    try:
        max_age = max(0, int(raw_max_age))
    except ValueError:
        max_age = 600
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=_env_flag("MARKDOWNDB_CORS_ALLOW_CREDENTIALS"),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
        max_age=max_age,
    )


# Registered before the request id middleware so preflight responses get the header too.
_configure_cors(app)


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
    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = _request_id_from_request(request)
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code="INVALID_ARGUMENT",
        status_code=422,
        failure_stage="validate_inputs",
    )
    return _error_response(
        status_code=422,
        error_code="INVALID_ARGUMENT",
        message="invalid request body",
        request_id=request_id,
        detail={"errors": _json_safe_errors(exc)},
    )


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Metadata endpoint for editor clients."""

    request_id = _request_id_from_request(request)
    payload = {
        "supported_kinds": list_entity_kinds(),
        "schemas": {kind: _schema_summary(get_schema(kind)) for kind in list_entity_kinds()},
        "fix_types": _fix_type_names(),
        "limits": {
            "max_text_chars": _max_text_chars(),
            "cache_fingerprint_length": _cache_fingerprint_length(),
        },
        "version": app.version,
    }
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content=payload,
    )


@app.post("/v1/parse")
async def parse_v1(request: Request, body: ParseRequest) -> JSONResponse:
    """Parse raw text into a structured document."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "validate_inputs"
    try:
        _check_text_size(body.text)
        _log_event(logging.INFO, "start", request_id, endpoint="parse", text_chars=len(body.text))

        failure_stage = "parse"
        document = parse(body.text)

        _log_event(
            logging.INFO,
            "done",
            request_id,
            endpoint="parse",
            total_ms=_elapsed_ms(request_started),
        )
        return _ok_response(request_id, {"document": document.to_dict()})
    except ApiRequestError as exc:
        return _logged_error_response(exc, request_id, failure_stage)


@app.post("/v1/validate")
async def validate_v1(request: Request, body: ValidateRequest) -> JSONResponse:
    """Parse and validate; uses the shared parse cache when entity_id is given."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "validate_inputs"
    try:
        _check_text_size(body.text)
        schema = _resolve_schema(body.kind, body.schema_yaml)
        _log_event(
            logging.INFO,
            "start",
            request_id,
            endpoint="validate",
            text_chars=len(body.text),
            kind=body.kind,
            schema_yaml_provided=body.schema_yaml is not None,
            entity_id=body.entity_id,
        )

        failure_stage = "validate"
        output = run_document(
            body.text,
            schema,
            cache=_get_parse_cache() if body.entity_id is not None else None,
            entity_id=body.entity_id,
        )

        _log_event(
            logging.INFO,
            "done",
            request_id,
            endpoint="validate",
            valid=output.report.valid,
            error_count=len(output.report.errors),
            warning_count=len(output.report.warnings),
            total_ms=_elapsed_ms(request_started),
        )
        return _ok_response(request_id, _validation_payload(output))
    except ApiRequestError as exc:
        return _logged_error_response(exc, request_id, failure_stage)


@app.post("/v1/fix")
async def fix_v1(request: Request, body: FixRequest) -> JSONResponse:
    """Apply one fix and return the patched text with a fresh report."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "validate_inputs"
    try:
        _check_text_size(body.text)
        if (body.fix is None) == (body.index is None):
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="exactly one of fix or index is required",
                detail={"field": "fix"},
            )
        explicit_schema = _resolve_schema(body.kind, body.schema_yaml)
        _log_event(
            logging.INFO,
            "start",
            request_id,
            endpoint="fix",
            text_chars=len(body.text),
            index=body.index,
            fix_type=body.fix.type if body.fix is not None else None,
        )

        failure_stage = "resolve_fix"
        current = run_document(body.text, explicit_schema)
        fix = body.fix if body.fix is not None else _fix_at_index(current, body.index)

        failure_stage = "apply_fix"
        try:
            outcome = apply_fix_and_revalidate(
                body.text, fix, current.schema, cursor=body.cursor, choice=body.choice
            )
        except FixChoiceError as exc:
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_FIX_CHOICE",
                message=str(exc),
                detail={"field": exc.field, "allowed_values": exc.allowed_values},
            ) from exc

        _log_event(
            logging.INFO,
            "done",
            request_id,
            endpoint="fix",
            applied=outcome.result.applied,
            total_ms=_elapsed_ms(request_started),
        )
        payload = {
            "applied": outcome.result.applied,
            "text": outcome.result.text,
            "cursor": outcome.result.cursor,
            "fix": fix.model_dump(mode="json"),
            **_validation_payload(outcome.output),
        }
        return _ok_response(request_id, payload)
    except ApiRequestError as exc:
        return _logged_error_response(exc, request_id, failure_stage)


@app.get("/v1/cache/stats")
async def cache_stats_v1(request: Request) -> JSONResponse:
    request_id = _request_id_from_request(request)
    cache = _get_parse_cache()
    payload = {
        **cache.stats.to_dict(),
        "size": len(cache),
        "fingerprint_length": cache.fingerprint_length,
    }
    return _ok_response(request_id, payload)


@app.post("/v1/cache/prune")
async def cache_prune_v1(request: Request, body: PruneRequest) -> JSONResponse:
    """Drop cached documents whose entity id is not listed as live."""

    request_id = _request_id_from_request(request)
    cache = _get_parse_cache()
    pruned = cache.prune(body.live_ids)
    _log_event(logging.INFO, "done", request_id, endpoint="cache_prune", pruned=pruned)
    return _ok_response(request_id, {"pruned": pruned, "size": len(cache)})


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _resolve_schema(kind: str | None, schema_yaml: str | None) -> Schema | None:
    if schema_yaml is not None:
        try:
            return load_schema_text(schema_yaml, source="schema_yaml")
        except SchemaLoadError as exc:
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_SCHEMA",
                message=str(exc),
                detail={"field": "schema_yaml"},
            ) from exc
    if kind is not None:
        try:
            return get_schema(kind)
        except UnknownEntityKindError as exc:
            raise ApiRequestError(
                status_code=400,
                error_code="UNSUPPORTED_KIND",
                message=str(exc),
                detail={"field": "kind", "supported_kinds": exc.supported},
            ) from exc
    return None


def _fix_at_index(output: PipelineOutput, index: int | None) -> Fix:
    fixes = output.report.fixes
    if index is None or index < 0 or index >= len(fixes):
        raise ApiRequestError(
            status_code=404,
            error_code="FIX_NOT_FOUND",
            message="no fix at the requested index",
            detail={"field": "index", "index": index, "available": len(fixes)},
        )
    return fixes[index]


def _check_text_size(text: str) -> None:
    max_chars = _max_text_chars()
    if len(text) > max_chars:
        raise ApiRequestError(
            status_code=413,
            error_code="TEXT_TOO_LARGE",
            message="text exceeds size limit",
            detail={"field": "text", "max_text_chars": max_chars, "text_chars": len(text)},
        )


def _validation_payload(output: PipelineOutput) -> dict[str, Any]:
    return {
        "entity_type": output.schema.entity_type,
        "report": output.report.model_dump(mode="json"),
        "fixes": [fix.model_dump(mode="json") for fix in output.report.fixes],
    }


def _schema_summary(schema: Schema) -> dict[str, Any]:
    return {
        "entity_type": schema.entity_type,
        "required_top_level_fields": list(schema.required_top_level_fields),
        "known_fields": list(schema.known_fields),
        "sections": {
            name: {"required": rule.required, "has_entries": rule.entry is not None}
            for name, rule in schema.sections.items()
        },
        "enumerated_fields": {
            name: list(values) for name, values in schema.enumerated_fields.items()
        },
    }


def _fix_type_names() -> list[str]:
    union = get_args(Fix)[0]
    return [member.model_fields["type"].default for member in get_args(union)]


def _get_parse_cache() -> ParseCache:
    global _parse_cache

    with _cache_lock:
        if _parse_cache is None:
            _parse_cache = ParseCache(fingerprint_length=_cache_fingerprint_length())
        return _parse_cache


def _max_text_chars() -> int:
    raw = os.getenv("MARKDOWNDB_MAX_TEXT_CHARS")
    if raw is None:
        return _DEFAULT_MAX_TEXT_CHARS
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_TEXT_CHARS
    return parsed if parsed > 0 else _DEFAULT_MAX_TEXT_CHARS


def _cache_fingerprint_length() -> int:
    raw = os.getenv("MARKDOWNDB_CACHE_FINGERPRINT_LENGTH")
    if raw is None:
        return DEFAULT_FINGERPRINT_LENGTH
    try:
        parsed = int(raw)
    except ValueError:
        return DEFAULT_FINGERPRINT_LENGTH
    return parsed if parsed > 0 else DEFAULT_FINGERPRINT_LENGTH


def _json_safe_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": str(error.get("msg", "")),
            "type": str(error.get("type", "")),
        }
        for error in exc.errors()
    ]


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _ok_response(request_id: str, payload: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=200, headers={REQUEST_ID_HEADER: request_id}, content=payload)


def _logged_error_response(
    exc: ApiRequestError, request_id: str, failure_stage: str
) -> JSONResponse:
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code=exc.error_code,
        status_code=exc.status_code,
        failure_stage=failure_stage,
    )
    return _error_response(
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        request_id=request_id,
        detail=exc.detail,
    )


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
        headers={REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
