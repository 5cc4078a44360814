"""
axe-core adapter.

Treats axe as a black box: inject, run against the rendered page, translate
its result groups into raw issues. Severities come from axe's grouping, the
strategies never reassign them.
"""
import asyncio
import time
from typing import Any, Dict, List, Optional

from axe_selenium_python import Axe
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.webdriver import WebDriver

from app.features.audit.schemas.audit import Issue, Severity
from app.features.audit.services.browser_session import BrowserSession
from app.platform.config import settings
from app.platform.exceptions import EngineError
from app.platform.logger import get_logger

logger = get_logger("axe_engine")

AXE_RUN_SCRIPT = """
var callback = arguments[arguments.length - 1];
if (!window.axe) { return callback({error: 'axe not injected'}); }
axe.run(arguments[0], arguments[1])
  .then(function (results) { callback({ok: true, results: results}); })
  .catch(function (e) { callback({error: (e && e.message) || String(e)}); });
"""


def _selector(target: Any) -> str:
    if isinstance(target, list):
        return ", ".join(_selector(part) for part in target)
    return str(target)


def issues_from_axe(results: Dict[str, Any]) -> List[Issue]:
    """Flatten axe results into one issue per affected node, in axe's order."""
    issues: List[Issue] = []

    def _collect(rules: List[Dict[str, Any]], needs_review: bool) -> None:
        for rule in rules:
            tags = rule.get("tags") or []
            if needs_review:
                severity = Severity.WARNING
            elif any(tag.startswith("wcag") for tag in tags):
                severity = Severity.ERROR
            else:
                severity = Severity.NOTICE
            message = rule.get("help") or rule.get("description") or rule.get("id", "")
            for node in rule.get("nodes") or []:
                issues.append(
                    Issue(
                        code=rule.get("id", "unknown"),
                        severity=severity,
                        message=message,
                        selector=_selector(node.get("target") or ""),
                        context=node.get("html") or "",
                    )
                )

    _collect(results.get("violations") or [], needs_review=False)
    _collect(results.get("incomplete") or [], needs_review=True)
    return issues


class AxeEngine:
    """Runs axe-core inside a live browser session."""

    def __init__(
        self,
        run_only_tags: Optional[List[str]] = None,
        ignore_rules: Optional[List[str]] = None,
        hide_elements: Optional[List[str]] = None,
        wait_ms: int = 0,
    ):
        self.run_only_tags = run_only_tags if run_only_tags is not None else settings.AXE_RUN_ONLY_TAGS
        self.ignore_rules = ignore_rules if ignore_rules is not None else settings.AXE_IGNORE_RULES
        self.hide_elements = hide_elements if hide_elements is not None else settings.AXE_HIDE_ELEMENTS
        self.wait_ms = wait_ms

    def _context(self) -> Dict[str, Any]:
        if not self.hide_elements:
            return {"include": [["html"]]}
        return {"include": [["html"]], "exclude": [[selector] for selector in self.hide_elements]}

    def _options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"resultTypes": ["violations", "incomplete"]}
        if self.run_only_tags:
            options["runOnly"] = {"type": "tag", "values": list(self.run_only_tags)}
        if self.ignore_rules:
            options["rules"] = {rule: {"enabled": False} for rule in self.ignore_rules}
        return options

    def _run_sync(self, driver: WebDriver, url: str, timeout_ms: int) -> Dict[str, Any]:
        timeout_s = timeout_ms / 1000
        driver.set_page_load_timeout(timeout_s)
        driver.set_script_timeout(timeout_s)

        driver.get(url)
        if self.wait_ms:
            time.sleep(self.wait_ms / 1000)

        Axe(driver).inject()
        response = driver.execute_async_script(AXE_RUN_SCRIPT, self._context(), self._options())
        if not isinstance(response, dict) or response.get("error"):
            detail = response.get("error") if isinstance(response, dict) else "no response"
            raise EngineError(f"axe.run failed: {detail}")
        return response["results"]

    async def run(self, session: BrowserSession, url: str, timeout_ms: int) -> List[Issue]:
        """
        Audit `url` in the session's browser, bounded by `timeout_ms`.

        Raises:
            EngineError: navigation, injection or axe itself failed or timed out
        """
        driver = session.driver
        if driver is None:
            raise EngineError("No live browser session")

        start_time = time.monotonic()
        try:
            results = await asyncio.wait_for(
                asyncio.to_thread(self._run_sync, driver, url, timeout_ms), timeout_ms / 1000
            )
        except asyncio.TimeoutError:
            raise EngineError(f"Accessibility engine timed out after {timeout_ms}ms")
        except TimeoutException as e:
            raise EngineError(f"Accessibility engine timed out: {e.msg or e}") from e
        except WebDriverException as e:
            raise EngineError(f"WebDriver error: {e.msg or e}") from e
        except EngineError:
            raise
        except Exception as e:
            raise EngineError(str(e)) from e

        issues = issues_from_axe(results)
        elapsed = int((time.monotonic() - start_time) * 1000)
        logger.info(f"axe completed for {url} ({elapsed}ms, {len(issues)} issues)")
        return issues
