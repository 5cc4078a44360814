import json
import time
from typing import Callable, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.features.audit.schemas.audit import AuditIn, AuditReport, AuditRequest, Strategy
from app.features.audit.services.browser_session import BrowserSessionManager, DriverFactory
from app.features.audit.services.deadline import run_with_deadline
from app.features.audit.services.engine import AxeEngine
from app.features.audit.services.full_scan import AccessibilityEngine, FullScanStrategy
from app.features.audit.services.heuristic_scan import HeuristicScanStrategy
from app.features.audit.services.normalizer import normalize_report
from app.platform.config import AuditProfile, Settings, settings as default_settings
from app.platform.exceptions import ValidationError
from app.platform.logger import get_logger
from app.platform.utils.url_validator import validate_url

logger = get_logger("audit_service")

EngineFactory = Callable[[AuditProfile], AccessibilityEngine]


def parse_audit_request(body: bytes, strategy: Strategy, settings: Settings) -> AuditRequest:
    """Turn a raw POST body into an AuditRequest, raising ValidationError on bad input."""
    try:
        payload = json.loads(body or b"{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON body")

    if not payload.get("url"):
        raise ValidationError("Missing URL")

    try:
        audit_in = AuditIn.model_validate(payload)
    except PydanticValidationError as e:
        field = ".".join(str(part) for part in e.errors()[0]["loc"])
        raise ValidationError(f"Invalid {field}")

    return AuditRequest(
        target_url=validate_url(audit_in.url),
        deadline_ms=settings.resolve_deadline_ms(audit_in.timeout_ms),
        strategy=strategy,
    )


def _default_engine(profile: AuditProfile) -> AccessibilityEngine:
    return AxeEngine(wait_ms=profile.wait_ms)


class AuditService:
    """
    Runs one audit call end to end: strategy under the deadline supervisor,
    then normalization. Holds configuration only; every call builds its own
    strategy and browser session.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        driver_factory: Optional[DriverFactory] = None,
        engine_factory: Optional[EngineFactory] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or default_settings
        self.driver_factory = driver_factory
        self.engine_factory = engine_factory or _default_engine
        self.transport = transport

    def build_strategy(self, request: AuditRequest, profile: AuditProfile):
        if request.strategy == Strategy.FULL_SCAN:
            sessions = BrowserSessionManager(profile, driver_factory=self.driver_factory)
            return FullScanStrategy(sessions, self.engine_factory(profile), profile)
        return HeuristicScanStrategy(profile.fetch_timeout_ms, transport=self.transport)

    async def run(self, request: AuditRequest) -> AuditReport:
        start_time = time.monotonic()
        profile = self.settings.audit_profile(request.deadline_ms)
        strategy = self.build_strategy(request, profile)

        logger.info(
            f"Starting {request.strategy.value} audit for {request.target_url} "
            f"(deadline {profile.outer_deadline_ms}ms)"
        )

        output = await run_with_deadline(
            lambda: strategy.run(request.target_url),
            profile.outer_deadline_ms,
            cleanup=strategy.cleanup,
            grace_ms=profile.cleanup_grace_ms,
        )

        duration_ms = int((time.monotonic() - start_time) * 1000)
        report = normalize_report(
            request.target_url,
            output,
            standard=self.settings.AUDIT_STANDARD,
            duration_ms=duration_ms,
            max_issues=self.settings.AUDIT_MAX_ISSUES,
            max_field_length=self.settings.AUDIT_MAX_FIELD_LENGTH,
        )
        logger.info(
            f"Audit completed in {duration_ms}ms - Score: {report.score} "
            f"({len(output.issues)} issues, truncated={report.meta.truncated})"
        )
        return report
