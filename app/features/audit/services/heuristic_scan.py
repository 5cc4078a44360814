import asyncio
from typing import Optional

import httpx

from app.features.audit.schemas.audit import StrategyOutput
from app.features.audit.utils.heuristic_checks import run_checks
from app.platform.config import settings
from app.platform.exceptions import FetchError
from app.platform.logger import get_logger

logger = get_logger("heuristic_scan")


class HeuristicScanStrategy:
    """Browserless audit: one bounded fetch, then the structural rule set."""

    method = "heuristic"

    def __init__(
        self,
        fetch_timeout_ms: int,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: Optional[str] = None,
    ):
        self.fetch_timeout_ms = fetch_timeout_ms
        self.transport = transport
        self.user_agent = user_agent or settings.HEURISTIC_USER_AGENT

    async def _get(self, url: str) -> httpx.Response:
        timeout_s = self.fetch_timeout_ms / 1000
        async with httpx.AsyncClient(
            timeout=timeout_s,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent, "Accept": "text/html,application/xhtml+xml"},
            transport=self.transport,
        ) as client:
            return await client.get(url)

    async def fetch(self, url: str) -> str:
        """
        Fetch the page markup within `fetch_timeout_ms` (total, not per phase).

        Raises:
            FetchError: timeout, network failure or non-2xx status
        """
        try:
            response = await asyncio.wait_for(self._get(url), self.fetch_timeout_ms / 1000)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise FetchError(f"Fetching {url} timed out after {self.fetch_timeout_ms}ms")
        except httpx.HTTPError as e:
            raise FetchError(f"Fetching {url} failed: {e}") from e

        if not response.is_success:
            raise FetchError(f"Fetching {url} returned HTTP {response.status_code}")
        return response.text

    async def run(self, url: str) -> StrategyOutput:
        markup = await self.fetch(url)
        issues, score = run_checks(markup)
        logger.info(f"Heuristic scan of {url} found {len(issues)} issues, score {score}")
        return StrategyOutput(issues=issues, score=score, method=self.method)

    async def cleanup(self) -> None:
        # The HTTP client closes with its context manager; nothing outlives run()
        return None
