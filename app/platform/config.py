import math
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class Viewport(BaseModel):
    width: int
    height: int


class AuditProfile(BaseModel):
    """Per-call timing and browser configuration derived from Settings."""

    outer_deadline_ms: int
    inner_engine_timeout_ms: int
    fetch_timeout_ms: int
    launch_timeout_ms: int
    cleanup_grace_ms: int
    launch_flags: List[str]
    viewport: Viewport
    wait_ms: int = 0


def inner_timeout_ms(configured_ms: int, deadline_ms: int, headroom_ms: int) -> int:
    """
    Bound an internal timeout so it always finishes before the outer deadline.
    Never drops below half the deadline, which keeps it strictly smaller.
    """
    return max(min(configured_ms, deadline_ms - headroom_ms), deadline_ms // 2)


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "A11y Audit API"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = False

    # ── Logging ─────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # ── Audit ───────────────────────────────────
    AUDIT_STANDARD: str = "WCAG 2.1 AA"
    AUDIT_DEADLINE_MS: int = 9000  # serverless limit is 10s, 1s kept for cleanup
    AUDIT_MAX_DEADLINE_MS: int = 26000
    AUDIT_CLEANUP_GRACE_MS: int = 1000
    AUDIT_ENGINE_TIMEOUT_MS: int = 6000
    AUDIT_FETCH_TIMEOUT_MS: int = 8000
    AUDIT_INNER_HEADROOM_MS: int = 1000
    AUDIT_MAX_ISSUES: int = 50
    AUDIT_MAX_FIELD_LENGTH: int = 150
    AUDIT_CACHE_MAX_AGE: int = 300

    # ── Browser ─────────────────────────────────
    BROWSER_LAUNCH_TIMEOUT_MS: int = 8000
    BROWSER_LAUNCH_FLAGS: List[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-extensions",
        "--disable-features=VizDisplayCompositor",
        "--single-process",
        "--no-zygote",
        "--memory-pressure-off",
        "--js-flags=--max-old-space-size=512",
        "--disable-background-timer-throttling",
        "--disable-backgrounding-occluded-windows",
        "--disable-renderer-backgrounding",
        "--disable-background-networking",
        "--disable-default-apps",
        "--disable-sync",
        "--ignore-certificate-errors",
    ]
    BROWSER_VIEWPORT_WIDTH: int = 1280
    BROWSER_VIEWPORT_HEIGHT: int = 720
    BROWSER_WAIT_MS: int = 200
    CHROME_BINARY_PATH: Optional[str] = None
    CHROMEDRIVER_PATH: Optional[str] = None
    USE_WEBDRIVER_MANAGER: bool = False

    # ── Accessibility engine (axe-core) ─────────
    AXE_RUN_ONLY_TAGS: List[str] = ["wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "best-practice"]
    AXE_IGNORE_RULES: List[str] = []
    AXE_HIDE_ELEMENTS: List[str] = [".ads", ".advertisement", 'iframe[src*="ads"]']

    # ── Heuristic fetch ─────────────────────────
    HEURISTIC_USER_AGENT: str = "Mozilla/5.0 (compatible; A11yAuditBot/1.0)"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def resolve_deadline_ms(self, requested_ms: Optional[float]) -> int:
        """Caller deadline rounded up to whole milliseconds, clamped to the maximum."""
        if requested_ms is None:
            return self.AUDIT_DEADLINE_MS
        return min(math.ceil(requested_ms), self.AUDIT_MAX_DEADLINE_MS)

    def audit_profile(self, deadline_ms: Optional[int] = None) -> AuditProfile:
        deadline_ms = deadline_ms or self.AUDIT_DEADLINE_MS
        headroom = self.AUDIT_INNER_HEADROOM_MS
        return AuditProfile(
            outer_deadline_ms=deadline_ms,
            inner_engine_timeout_ms=inner_timeout_ms(self.AUDIT_ENGINE_TIMEOUT_MS, deadline_ms, headroom),
            fetch_timeout_ms=inner_timeout_ms(self.AUDIT_FETCH_TIMEOUT_MS, deadline_ms, headroom),
            launch_timeout_ms=inner_timeout_ms(self.BROWSER_LAUNCH_TIMEOUT_MS, deadline_ms, headroom),
            cleanup_grace_ms=self.AUDIT_CLEANUP_GRACE_MS,
            launch_flags=list(self.BROWSER_LAUNCH_FLAGS),
            viewport=Viewport(width=self.BROWSER_VIEWPORT_WIDTH, height=self.BROWSER_VIEWPORT_HEIGHT),
            wait_ms=self.BROWSER_WAIT_MS,
        )


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    return settings
