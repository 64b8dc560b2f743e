from conftest import FakeBrowser, FakePage
from src.adapters import build_adapters
from src.agents.state import ApplicationResult, Platform
from src.graph.workflow import ApplicationOrchestrator, route_after_step


class RaisingAdapter:
    platform = Platform.GREENHOUSE

    def fill(self, page, cv, resume_path, job=None):
        raise RuntimeError("selector engine crashed")


def make_orchestrator(tmp_path, **overrides):
    adapters = build_adapters(None)
    adapters.update(overrides)
    return ApplicationOrchestrator(adapters=adapters, screenshot_dir=tmp_path)


def test_successful_greenhouse_attempt(tmp_path, cv, job):
    page = FakePage(selectors=("#first_name", "#last_name", "#email"))
    browser = FakeBrowser(page)

    result = make_orchestrator(tmp_path).apply(browser, cv=cv, job=job, application_id="app-1")

    assert result.success
    assert result.platform == Platform.GREENHOUSE
    assert result.confirmation_url == job.application_url
    assert result.screenshot_path.startswith(str(tmp_path))
    assert "application_app-1_" in result.screenshot_path
    assert browser.opened == browser.closed == 1


def test_navigation_failure_still_captures_screenshot(tmp_path, cv, job):
    page = FakePage()
    page.navigate_error = "Timeout 30000ms exceeded"
    browser = FakeBrowser(page)

    result = make_orchestrator(tmp_path).apply(browser, cv=cv, job=job)

    assert not result.success
    assert "Timeout" in result.error
    assert len(page.screenshots) == 1
    assert result.screenshot_path == page.screenshots[0]
    assert browser.closed == 1


def test_adapter_exception_becomes_failed_result(tmp_path, cv, job):
    page = FakePage()
    browser = FakeBrowser(page)

    result = make_orchestrator(tmp_path, **{Platform.GREENHOUSE: RaisingAdapter()}).apply(
        browser, cv=cv, job=job
    )

    assert not result.success
    assert result.error == "selector engine crashed"
    assert result.platform == Platform.GREENHOUSE
    assert len(page.screenshots) == 1


def test_screenshot_failure_does_not_hide_result(tmp_path, cv, job):
    page = FakePage(selectors=("#first_name", "#last_name", "#email"))

    def broken_screenshot(path):
        raise RuntimeError("page crashed")

    page.screenshot = broken_screenshot

    result = make_orchestrator(tmp_path).apply(FakeBrowser(page), cv=cv, job=job)

    assert result.success
    assert result.screenshot_path is None


def test_linkedin_attempt_fails_without_filling(tmp_path, cv, job):
    linkedin_job = job.model_copy(update={"application_url": "https://www.linkedin.com/jobs/view/42"})
    page = FakePage()

    result = make_orchestrator(tmp_path).apply(FakeBrowser(page), cv=cv, job=linkedin_job)

    assert not result.success
    assert result.platform == Platform.LINKEDIN
    assert page.filled == {}


def test_route_after_step():
    assert route_after_step({"result": None}) == "continue"
    assert route_after_step({"result": ApplicationResult(success=True)}) == "continue"
    assert route_after_step({"result": ApplicationResult.failure("boom")}) == "capture"
