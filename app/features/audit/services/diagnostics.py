import importlib
import json
import time
from typing import Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from app.features.audit.schemas.diagnostics import CheckOutcome, DiagnosticsIn, DiagnosticsReport, DiagnosticStep
from app.features.audit.services.browser_session import BrowserSessionManager, DriverFactory
from app.platform.config import Settings, settings as default_settings
from app.platform.exceptions import BrowserUnavailable, ValidationError
from app.platform.logger import get_logger

logger = get_logger("diagnostics")

# step -> module the full scan needs at runtime
IMPORT_CHECKS: Dict[DiagnosticStep, str] = {
    DiagnosticStep.SELENIUM: "selenium.webdriver",
    DiagnosticStep.AXE: "axe_selenium_python",
}


def parse_diagnostics_request(body: bytes) -> DiagnosticsIn:
    """An empty body runs every step."""
    try:
        payload = json.loads(body or b"{}")
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON body")

    try:
        return DiagnosticsIn.model_validate(payload)
    except PydanticValidationError as e:
        field = ".".join(str(part) for part in e.errors()[0]["loc"])
        raise ValidationError(f"Invalid {field}")


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)


def check_import(module_name: str) -> CheckOutcome:
    start_time = time.monotonic()
    try:
        importlib.import_module(module_name)
    except Exception as e:
        return CheckOutcome(ok=False, detail=f"Import failed: {e}", duration_ms=_elapsed_ms(start_time))

    root = importlib.import_module(module_name.split(".")[0])
    version = getattr(root, "__version__", None)
    detail = f"Import successful ({version})" if version else "Import successful"
    return CheckOutcome(ok=True, detail=detail, duration_ms=_elapsed_ms(start_time))


class DiagnosticsService:
    """
    Triage for deployments where the full scan fails: runs the requested step
    (or every step) and reports each outcome instead of raising.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        driver_factory: Optional[DriverFactory] = None,
        import_checks: Optional[Dict[DiagnosticStep, str]] = None,
    ):
        self.settings = settings or default_settings
        self.driver_factory = driver_factory
        self.import_checks = import_checks if import_checks is not None else IMPORT_CHECKS

    async def check_browser(self) -> CheckOutcome:
        """Launch one browser under the launch timeout and close it on every path."""
        start_time = time.monotonic()
        sessions = BrowserSessionManager(self.settings.audit_profile(), driver_factory=self.driver_factory)
        session = sessions.session()
        try:
            await sessions.acquire(session)
        except BrowserUnavailable as e:
            return CheckOutcome(ok=False, detail=e.message, duration_ms=_elapsed_ms(start_time))
        finally:
            await sessions.release(session)
        return CheckOutcome(ok=True, detail="Launch successful", duration_ms=_elapsed_ms(start_time))

    async def run(self, step: DiagnosticStep = DiagnosticStep.ALL, url: Optional[str] = None) -> DiagnosticsReport:
        tests: Dict[str, CheckOutcome] = {}

        for check_step, module_name in self.import_checks.items():
            if step in (DiagnosticStep.ALL, check_step):
                tests[check_step.value] = check_import(module_name)

        if step in (DiagnosticStep.ALL, DiagnosticStep.BROWSER):
            tests[DiagnosticStep.BROWSER.value] = await self.check_browser()

        for name, outcome in tests.items():
            if outcome.ok:
                logger.info(f"Diagnostics {name}: {outcome.detail}")
            else:
                logger.error(f"Diagnostics {name}: {outcome.detail}")

        return DiagnosticsReport(
            step=step,
            url=url,
            ok=all(outcome.ok for outcome in tests.values()),
            tests=tests,
        )
