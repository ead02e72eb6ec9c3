from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import hashlib
from buchhaltung.core.audit import audit_repo
from buchhaltung.schemas.audit import AuditLogEntry, AuditStatus
import logging
from typing import Callable

logger = logging.getLogger(__name__)

# Checked in order, first match wins
ACTION_TYPES = [
    ("/api/upload/rename", "RENAME"),
    ("/api/buchungen/assign", "ASSIGN"),
    ("/kategorie-vorschlag", "SUGGEST"),
    ("/api/upload", "UPLOAD"),
    ("/api/docs/upload", "UPLOAD"),
    ("/api/docs", "DOCUMENTS"),
    ("/api/irrelevant-docs", "IRRELEVANT"),
    ("/api/importkk", "IMPORT"),
    ("/api/import", "IMPORT"),
    ("/api/xfact", "IMPORT"),
    ("/api/kb", "REPORT"),
    ("/api/buchung", "LEDGER"),
    ("/api/audit", "AUDIT"),
    ("/health", "HEALTH_CHECK"),
]

EXCLUDED_PREFIXES = ["/static"]


def action_type_for(endpoint: str) -> str:
    for fragment, action in ACTION_TYPES:
        if fragment in endpoint:
            return action
    if endpoint.startswith("/api"):
        return "UNKNOWN"
    return "PAGE"


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        # 1. Capture Request Details
        endpoint = request.url.path
        method = request.method

        if any(endpoint.startswith(p) for p in EXCLUDED_PREFIXES):
            return await call_next(request)

        action_type = action_type_for(endpoint)

        # 2. Capture & Hash Input
        input_hash = None
        request_body_bytes = b""
        try:
            request_body_bytes = await request.body()
            # Always hash the body, even if empty, for determinism
            input_hash = hashlib.sha256(request_body_bytes).hexdigest()
        except Exception as e:
            logger.warning(f"Could not read request body for audit: {e}")

        # BaseHTTPMiddleware caches the body it read, so the endpoint can still
        # read it and later receive() calls reach the server for disconnects.

        # 3. Process Request
        response = None
        status = AuditStatus.FAILURE
        status_code = None
        output_hash = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            if 200 <= response.status_code < 300:
                status = AuditStatus.SUCCESS

            # 4. Capture & Hash Output
            response_body_bytes = b""
            async for chunk in response.body_iterator:
                response_body_bytes += chunk

            output_hash = hashlib.sha256(response_body_bytes).hexdigest()

            # Reconstruct response
            response = Response(
                content=response_body_bytes,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type
            )

        except Exception:
            status = AuditStatus.FAILURE
            raise
        finally:
            # 5. Log Event
            try:
                entry = AuditLogEntry(
                    endpoint=endpoint,
                    method=method,
                    action_type=action_type,
                    status_code=status_code,
                    input_hash=input_hash,
                    output_hash=output_hash,
                    status=status
                )
                audit_repo.save(entry)
            except Exception as log_error:
                logger.error(f"Audit Logging Failed: {log_error}")

        return response
