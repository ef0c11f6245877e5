"""
app/core/logging.py — loguru structured JSON logging setup
One helper per lifecycle event so every log line has the same shape:
component, operation, timestamp plus event fields.
"""
from __future__ import annotations

import json
import sys
import traceback
from typing import Any, Optional

from loguru import logger

from app.utils.timezone import to_iso, utc_now


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure loguru for structured JSON output to stdout.
    """
    # Remove default loguru handler
    logger.remove()

    logger.add(
        sys.stdout,
        level=log_level.upper(),
        format="{message}",
        serialize=True,       # loguru built-in JSON serialization
        backtrace=True,
        diagnose=False,       # Never dump locals (draft bodies) into logs
        colorize=False,
    )


def _build_log_record(
    component: str,
    operation: str,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a base structured log record."""
    record: dict[str, Any] = {
        "timestamp": to_iso(utc_now()),
        "component": component,
        "operation": operation,
    }
    if extra:
        record.update(extra)
    return record


# ──────────────────────────────────────────────────────────────────────────────
# Lifecycle event helpers
# ──────────────────────────────────────────────────────────────────────────────

def log_request_created(request_id: str, client: str, has_email: bool) -> None:
    record = _build_log_record("request_store", "create", {
        "request_id": request_id,
        "client": client,
        "has_email": has_email,
    })
    logger.info(json.dumps(record))


def log_submission(request_id: str, action: str, applied: bool, via: str) -> None:
    """applied=False means a duplicate submission was ignored."""
    record = _build_log_record("request_store", "finalize", {
        "request_id": request_id,
        "action": action,
        "applied": applied,
        "via": via,
    })
    if applied:
        logger.info(json.dumps(record))
    else:
        logger.warning(json.dumps(record))


def log_webhook_forward(
    request_id: Optional[str],
    action: str,
    target: str,
    success: bool,
    latency_ms: float,
    status_code: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    record = _build_log_record("webhook_client", "forward", {
        "request_id": request_id,
        "action": action,
        "target": target,
        "success": success,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
        "error": error,
    })
    if success:
        logger.info(json.dumps(record))
    else:
        logger.error(json.dumps(record))


def log_rewrite_call(
    model: str,
    success: bool,
    latency_ms: float,
    input_chars: int,
    output_chars: int = 0,
    error_type: Optional[str] = None,
) -> None:
    record = _build_log_record("gemini_client", "rewrite", {
        "model": model,
        "success": success,
        "latency_ms": round(latency_ms, 2),
        "input_chars": input_chars,
        "output_chars": output_chars,
        "error_type": error_type,
    })
    logger.info(json.dumps(record))


def log_sweep(component: str, removed: int, remaining: int) -> None:
    record = _build_log_record(component, "sweep", {
        "removed": removed,
        "remaining": remaining,
    })
    if removed:
        logger.info(json.dumps(record))
    else:
        logger.debug(json.dumps(record))


def log_http_request(method: str, path: str, status_code: int, latency_ms: float) -> None:
    record = _build_log_record("http", "request", {
        "method": method,
        "path": path,
        "status_code": status_code,
        "latency_ms": round(latency_ms, 2),
    })
    logger.info(json.dumps(record))


def log_error(
    component: str,
    operation: str,
    error: Exception,
    context: Optional[dict[str, Any]] = None,
) -> None:
    """Every error is logged with its type, message and stack."""
    tb = traceback.format_exc()
    record = _build_log_record(component, operation, {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "stack_trace": tb[:2000] if tb and tb != "NoneType: None\n" else "",
        "context": context or {},
    })
    logger.error(json.dumps(record))
