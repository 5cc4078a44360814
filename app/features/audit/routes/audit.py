import time
from functools import lru_cache

from fastapi import APIRouter, Depends, Request

from app.features.audit.schemas.audit import AuditReport, Strategy
from app.features.audit.services.audit import AuditService, parse_audit_request
from app.features.audit.services.diagnostics import DiagnosticsService, parse_diagnostics_request
from app.platform.config import Settings, get_settings
from app.platform.exceptions import AuditError, AuditTimeout
from app.platform.logger import get_logger
from app.platform.response import api_response, audit_response, error_response

logger = get_logger("audit_routes")
router = APIRouter(prefix="/audit", tags=["Audit"])

HEURISTIC_ENDPOINT = "/api/v1/audit/heuristic"


@lru_cache
def get_audit_service() -> AuditService:
    return AuditService(settings=get_settings())


@lru_cache
def get_diagnostics_service() -> DiagnosticsService:
    return DiagnosticsService(settings=get_settings())


def _full_scan_troubleshooting(exc: AuditError) -> dict:
    troubleshooting = {
        "suggestion": "Try the heuristic audit for a guaranteed working alternative",
        "fallback": f"Use {HEURISTIC_ENDPOINT}",
    }
    if isinstance(exc, AuditTimeout):
        troubleshooting["timeout"] = "The audit took too long for the execution time limit"
    return troubleshooting


async def _run_audit(request: Request, strategy: Strategy, service: AuditService, settings: Settings):
    start_time = time.monotonic()
    # ValidationError propagates to the registered handler (400)
    audit_request = parse_audit_request(await request.body(), strategy, settings)

    try:
        report = await service.run(audit_request)
    except AuditError as exc:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.error(f"{strategy.value} audit of {audit_request.target_url} failed after {duration_ms}ms: {exc.message}")
        extra = {"durationMs": duration_ms}
        if strategy == Strategy.FULL_SCAN:
            extra["troubleshooting"] = _full_scan_troubleshooting(exc)
            message = f"Full scan audit failed: {exc.message}"
        else:
            message = f"Heuristic audit failed: {exc.message}"
        return error_response(message, status_code=exc.status_code, code=exc.code, extra=extra)

    return audit_response(report, max_age=settings.AUDIT_CACHE_MAX_AGE)


@router.post("/full", response_model=AuditReport)
async def full_audit(
    request: Request,
    service: AuditService = Depends(get_audit_service),
    settings: Settings = Depends(get_settings),
):
    return await _run_audit(request, Strategy.FULL_SCAN, service, settings)


@router.post("/heuristic", response_model=AuditReport)
async def heuristic_audit(
    request: Request,
    service: AuditService = Depends(get_audit_service),
    settings: Settings = Depends(get_settings),
):
    return await _run_audit(request, Strategy.HEURISTIC, service, settings)


@router.post("/diagnostics")
async def diagnostics(request: Request, service: DiagnosticsService = Depends(get_diagnostics_service)):
    """
    Step-wise runtime checks (`selenium`, `axe`, `browser` or `all`).
    Failed checks are reported in the body; the call itself still succeeds.
    """
    diagnostics_in = parse_diagnostics_request(await request.body())
    report = await service.run(diagnostics_in.step, url=diagnostics_in.url)
    return api_response(
        data=report.model_dump(by_alias=True),
        message="Diagnostics completed" if report.ok else "Diagnostics found failures",
    )
