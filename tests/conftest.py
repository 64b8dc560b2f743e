from contextlib import contextmanager

import pytest

from src.agents.state import CvSnapshot, JobPosting
from src.db.base import dispose_engine
from src.errors import AutomationError


class FakePage:
    """In-memory stand-in for BrowserPage."""

    def __init__(self, url="https://example.com/jobs/1", html="<form></form>", selectors=(), textareas=None):
        self.url = url
        self.html = html
        self.selectors = set(selectors)
        self.textareas = textareas or []
        self.filled = {}
        self.uploaded = {}
        self.clicked = []
        self.screenshots = []
        self.fail_on = set()
        self.navigate_error = None

    def navigate(self, url):
        if self.navigate_error:
            raise AutomationError(self.navigate_error)
        self.url = url

    def fill(self, selector, value):
        if selector in self.fail_on:
            raise AutomationError(f"Could not fill {selector}")
        self.filled[selector] = value

    def upload_file(self, selector, path):
        if selector in self.fail_on:
            raise AutomationError(f"Could not upload to {selector}")
        self.uploaded[selector] = path

    def click(self, selector):
        if selector not in self.selectors:
            raise AutomationError(f"Could not click {selector}")
        self.clicked.append(selector)

    def exists(self, selector):
        return selector in self.selectors

    def screenshot(self, path):
        self.screenshots.append(path)
        return path

    def read_html(self):
        return self.html

    def current_url(self):
        return self.url

    def describe_textareas(self):
        return list(self.textareas)

    def wait(self, milliseconds):
        pass


class FakeBrowser:
    """Hands out one FakePage per context and records closes."""

    def __init__(self, page=None):
        self.page = page or FakePage()
        self.opened = 0
        self.closed = 0
        self.shut_down = False

    @contextmanager
    def new_page(self):
        self.opened += 1
        try:
            yield self.page
        finally:
            self.closed += 1

    def close(self):
        self.shut_down = True


class FakeClock:
    """Settable epoch clock for queue timing."""

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeBackend:
    """ChatBackend double returning canned responses or raising."""

    def __init__(self, name, responses=None, error=None):
        self.name = name
        self.responses = list(responses or [])
        self.error = error
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return f"{self.name} answer"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cv():
    return CvSnapshot.model_validate({
        "fullName": "Ada Lovelace",
        "email": "ada@example.com",
        "phone": "+44 20 7946 0000",
        "summary": "Analytical engine programmer",
        "skills": {"technical": ["Python", "SQL"], "soft": ["Writing"]},
        "experience": [{"company": "Analytical Engines Ltd", "title": "Programmer"}],
    })


@pytest.fixture
def job():
    return JobPosting(
        title="Backend Engineer",
        company="Acme",
        description="Build APIs in Python",
        application_url="https://boards.greenhouse.io/acme/jobs/123",
    )


@pytest.fixture
def database_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'apply.db'}"
    yield url
    dispose_engine(url)
