"""Stand-ins for the browser process, the axe engine and remote origins."""

import asyncio
import time
from typing import Dict, List, Optional

import httpx

from app.features.audit.schemas.audit import Issue, Severity
from app.platform.exceptions import EngineError


class FakeDriver:
    def __init__(self, counter: "BrowserCounter"):
        self.counter = counter
        self.closed = False

    def quit(self):
        self.counter.closes += 1
        self.closed = True
        if self.counter.fail_quit:
            raise RuntimeError("chrome not reachable")


class BrowserCounter:
    """Driver factory that records every launch and close."""

    def __init__(self, launch_delay_s: float = 0.0, launch_error: Optional[Exception] = None):
        self.launches = 0
        self.closes = 0
        self.launch_delay_s = launch_delay_s
        self.launch_error = launch_error
        self.fail_quit = False
        self.profiles = []

    def __call__(self, profile) -> FakeDriver:
        self.profiles.append(profile)
        if self.launch_delay_s:
            time.sleep(self.launch_delay_s)
        if self.launch_error is not None:
            raise self.launch_error
        self.launches += 1
        return FakeDriver(self)


def make_issues(errors: int = 0, warnings: int = 0, notices: int = 0) -> List[Issue]:
    issues = []
    for severity, count in ((Severity.ERROR, errors), (Severity.WARNING, warnings), (Severity.NOTICE, notices)):
        for i in range(count):
            issues.append(
                Issue(
                    code=f"rule-{severity.value}-{i}",
                    severity=severity,
                    message=f"{severity.value} {i}",
                    selector=f"#node-{i}",
                    context=f"<div id='node-{i}'></div>",
                )
            )
    return issues


class FakeEngine:
    """
    Accessibility engine double. mode is "ok", "error" or "hang";
    "hang" never returns on its own and only stops when cancelled.
    """

    def __init__(self, issues: Optional[List[Issue]] = None, mode: str = "ok"):
        self.issues = issues if issues is not None else make_issues(errors=3, warnings=2, notices=1)
        self.mode = mode
        self.calls = []

    def factory(self, profile) -> "FakeEngine":
        return self

    async def run(self, session, url: str, timeout_ms: int) -> List[Issue]:
        self.calls.append((url, timeout_ms))
        assert session.driver is not None
        if self.mode == "error":
            raise EngineError("axe.run failed: boom")
        if self.mode == "hang":
            await asyncio.sleep(3600)
        return list(self.issues)


class StaticSite:
    """httpx MockTransport handler serving fixed markup per URL."""

    def __init__(self):
        self.pages: Dict[str, str] = {}
        self.status: Dict[str, int] = {}
        self.delay_s: float = 0.0
        self.requests: List[httpx.Request] = []

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        url = str(request.url)
        if url not in self.pages:
            return httpx.Response(self.status.get(url, 404), text="not found")
        return httpx.Response(
            self.status.get(url, 200),
            text=self.pages[url],
            headers={"Content-Type": "text/html"},
        )
