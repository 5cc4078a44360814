import asyncio
import threading
import time
from typing import Callable, Optional

from selenium import webdriver
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.chrome.webdriver import WebDriver

from app.platform.config import AuditProfile, settings
from app.platform.exceptions import BrowserUnavailable
from app.platform.logger import get_logger

logger = get_logger("browser_session")

DriverFactory = Callable[[AuditProfile], WebDriver]


def build_driver(profile: AuditProfile) -> WebDriver:
    """
    Launch one headless Chrome configured for an untrusted URL inside a
    memory-constrained runtime.
    """
    chrome_options = Options()
    chrome_options.add_argument("--headless=new")
    for flag in profile.launch_flags:
        chrome_options.add_argument(flag)
    chrome_options.add_argument(f"--window-size={profile.viewport.width},{profile.viewport.height}")
    if settings.CHROME_BINARY_PATH:
        chrome_options.binary_location = settings.CHROME_BINARY_PATH

    if settings.CHROMEDRIVER_PATH:
        driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        return webdriver.Chrome(service=driver_service, options=chrome_options)

    if settings.USE_WEBDRIVER_MANAGER:
        from webdriver_manager.chrome import ChromeDriverManager

        driver_service = Service(ChromeDriverManager().install())
        return webdriver.Chrome(service=driver_service, options=chrome_options)

    return webdriver.Chrome(options=chrome_options)


class BrowserSession:
    """
    Handle to at most one browser process.

    The handle exists before the process does: a launch that completes after
    the session was released is closed on arrival instead of leaking.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._driver: Optional[WebDriver] = None
        self._released = False

    @property
    def driver(self) -> Optional[WebDriver]:
        return self._driver

    @property
    def released(self) -> bool:
        return self._released

    def _attach(self, driver: WebDriver) -> bool:
        with self._lock:
            if self._released:
                return False
            self._driver = driver
            return True

    def _detach(self) -> Optional[WebDriver]:
        with self._lock:
            if self._released:
                return None
            self._released = True
            driver, self._driver = self._driver, None
            return driver


def _quit(driver: WebDriver) -> None:
    try:
        driver.quit()
    except Exception as e:
        logger.warning(f"Browser close failed: {e}")


class BrowserSessionManager:
    """Acquires and releases the browser process for one audit call."""

    def __init__(self, profile: AuditProfile, driver_factory: Optional[DriverFactory] = None):
        self.profile = profile
        self.driver_factory = driver_factory or build_driver

    def session(self) -> BrowserSession:
        return BrowserSession()

    def _launch_into(self, session: BrowserSession) -> None:
        start_time = time.monotonic()
        driver = self.driver_factory(self.profile)
        if not session._attach(driver):
            logger.info("Browser launched after the session was released, closing it")
            _quit(driver)
            return
        elapsed = int((time.monotonic() - start_time) * 1000)
        logger.info(f"Browser ready ({elapsed}ms)")

    async def acquire(self, session: Optional[BrowserSession] = None) -> BrowserSession:
        """
        Launch a browser into `session` (a fresh one if omitted).

        Raises:
            BrowserUnavailable: launch failed or exceeded the launch timeout
        """
        session = session or self.session()
        if session.released:
            raise BrowserUnavailable("Browser session was already released")

        timeout_s = self.profile.launch_timeout_ms / 1000
        try:
            await asyncio.wait_for(asyncio.to_thread(self._launch_into, session), timeout_s)
        except asyncio.TimeoutError:
            raise BrowserUnavailable(f"Browser launch timed out after {self.profile.launch_timeout_ms}ms")
        except Exception as e:
            raise BrowserUnavailable(f"Browser launch failed: {e}") from e

        if session.driver is None:
            raise BrowserUnavailable("Browser session was released during launch")
        return session

    async def release(self, session: Optional[BrowserSession]) -> None:
        """Close the session's browser. Safe to call repeatedly, never raises."""
        if session is None:
            return
        driver = session._detach()
        if driver is None:
            return
        start_time = time.monotonic()
        await asyncio.to_thread(_quit, driver)
        elapsed = int((time.monotonic() - start_time) * 1000)
        logger.info(f"Browser closed ({elapsed}ms)")
