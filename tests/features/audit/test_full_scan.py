import pytest

from app.features.audit.services.browser_session import BrowserSessionManager
from app.features.audit.services.full_scan import FullScanStrategy, full_scan_score
from app.platform.exceptions import BrowserUnavailable, EngineError
from tests.fakes import BrowserCounter, FakeEngine, make_issues


@pytest.mark.parametrize(
    "errors, expected",
    [(0, 100), (1, 98), (10, 80), (40, 20), (41, 20), (500, 20)],
)
def test_full_scan_score(errors, expected):
    assert full_scan_score(make_issues(errors=errors, warnings=7, notices=3)) == expected


def test_full_scan_score_is_monotonic():
    scores = [full_scan_score(make_issues(errors=n)) for n in range(0, 60)]
    assert all(a >= b for a, b in zip(scores, scores[1:]))
    assert all(0 <= s <= 100 for s in scores)


def _strategy(settings, browsers, engine):
    profile = settings.audit_profile()
    return FullScanStrategy(BrowserSessionManager(profile, driver_factory=browsers), engine, profile)


@pytest.mark.asyncio
async def test_full_scan_releases_browser_on_success(fast_settings, browsers):
    engine = FakeEngine(make_issues(errors=5, warnings=1))
    strategy = _strategy(fast_settings, browsers, engine)

    output = await strategy.run("https://example.com")

    assert output.score == 90
    assert output.method == "axe-full"
    assert len(output.issues) == 6
    assert browsers.launches == browsers.closes == 1


@pytest.mark.asyncio
async def test_full_scan_passes_inner_timeout_to_engine(fast_settings, browsers, engine):
    strategy = _strategy(fast_settings, browsers, engine)

    await strategy.run("https://example.com")

    (_, timeout_ms), = engine.calls
    assert timeout_ms == fast_settings.audit_profile().inner_engine_timeout_ms
    assert timeout_ms < fast_settings.AUDIT_DEADLINE_MS


@pytest.mark.asyncio
async def test_full_scan_releases_browser_on_engine_error(fast_settings, browsers):
    strategy = _strategy(fast_settings, browsers, FakeEngine(mode="error"))

    with pytest.raises(EngineError):
        await strategy.run("https://example.com")

    assert browsers.launches == browsers.closes == 1


@pytest.mark.asyncio
async def test_full_scan_launch_failure(fast_settings, engine):
    browsers = BrowserCounter(launch_error=RuntimeError("no chrome"))
    strategy = _strategy(fast_settings, browsers, engine)

    with pytest.raises(BrowserUnavailable):
        await strategy.run("https://example.com")

    assert engine.calls == []
    assert browsers.launches == browsers.closes == 0


@pytest.mark.asyncio
async def test_cleanup_after_run_is_noop(fast_settings, browsers, engine):
    strategy = _strategy(fast_settings, browsers, engine)

    await strategy.run("https://example.com")
    await strategy.cleanup()
    await strategy.cleanup()

    assert browsers.closes == 1
