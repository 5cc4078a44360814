from typing import List, Protocol

from app.features.audit.schemas.audit import Issue, Severity, StrategyOutput
from app.features.audit.services.browser_session import BrowserSession, BrowserSessionManager
from app.platform.config import AuditProfile
from app.platform.logger import get_logger

logger = get_logger("full_scan")

MAX_ERROR_PENALTY = 80


class AccessibilityEngine(Protocol):
    async def run(self, session: BrowserSession, url: str, timeout_ms: int) -> List[Issue]: ...


def full_scan_score(issues: List[Issue]) -> int:
    """2 points per error, penalty capped at 80."""
    errors = sum(1 for issue in issues if issue.severity == Severity.ERROR)
    return max(0, 100 - min(errors * 2, MAX_ERROR_PENALTY))


class FullScanStrategy:
    """Browser-driven audit: launch, run the rule engine, always release."""

    method = "axe-full"

    def __init__(
        self,
        sessions: BrowserSessionManager,
        engine: AccessibilityEngine,
        profile: AuditProfile,
    ):
        self.sessions = sessions
        self.engine = engine
        self.profile = profile
        self.session: BrowserSession = sessions.session()

    async def run(self, url: str) -> StrategyOutput:
        try:
            await self.sessions.acquire(self.session)
            issues = await self.engine.run(self.session, url, self.profile.inner_engine_timeout_ms)
        finally:
            await self.sessions.release(self.session)

        score = full_scan_score(issues)
        logger.info(f"Full scan of {url} found {len(issues)} issues, score {score}")
        return StrategyOutput(issues=issues, score=score, method=self.method)

    async def cleanup(self) -> None:
        await self.sessions.release(self.session)
