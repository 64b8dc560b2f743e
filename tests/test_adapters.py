from conftest import FakePage
from src.adapters import build_adapters
from src.adapters.greenhouse import GreenhouseAdapter
from src.adapters.lever import APPLY_LINK, LeverAdapter
from src.adapters.linkedin import LinkedInAdapter
from src.adapters.workday import APPLY_BUTTON, WorkdayAdapter
from src.agents.state import CvSnapshot, Platform
from src.errors import QuotaExceededError

GREENHOUSE_FIELDS = ("#first_name", "#last_name", "#email", "#phone", 'input[type="file"]')


class StubMapper:
    def __init__(self, answer="I love building APIs.", error=None):
        self.answer = answer
        self.error = error
        self.questions = []

    def generate_answer(self, question, cv, job_description=""):
        self.questions.append(question)
        if self.error:
            raise self.error
        return self.answer


def test_greenhouse_fills_core_fields_and_answers_questions(cv, job):
    page = FakePage(
        url="https://boards.greenhouse.io/acme/jobs/123",
        selectors=GREENHOUSE_FIELDS + ("#question_1",),
        textareas=[{"selector": "#question_1", "label": "Why Acme?", "value": ""}],
    )
    mapper = StubMapper()

    result = GreenhouseAdapter(mapper).fill(page, cv, "/tmp/resume.pdf", job=job)

    assert result.success
    assert result.platform == Platform.GREENHOUSE
    assert page.filled["#first_name"] == "Ada"
    assert page.filled["#last_name"] == "Lovelace"
    assert page.filled["#email"] == "ada@example.com"
    assert page.filled["#question_1"] == "I love building APIs."
    assert page.uploaded['input[type="file"]'] == "/tmp/resume.pdf"
    assert result.fields_processed == 6
    assert mapper.questions == ["Why Acme?"]


def test_greenhouse_missing_required_field_fails(cv, job):
    page = FakePage(selectors=("#first_name", "#last_name"))

    result = GreenhouseAdapter().fill(page, cv, "", job=job)

    assert not result.success
    assert "email" in result.error
    assert result.platform == Platform.GREENHOUSE


def test_greenhouse_single_word_name_leaves_last_name_blank(job):
    page = FakePage(selectors=GREENHOUSE_FIELDS)
    cv = CvSnapshot(full_name="Madonna", email="madonna@example.com")

    result = GreenhouseAdapter().fill(page, cv, "", job=job)

    assert result.success
    assert page.filled["#first_name"] == "Madonna"
    assert page.filled["#last_name"] == ""


def test_greenhouse_required_fill_error_fails(cv, job):
    page = FakePage(selectors=GREENHOUSE_FIELDS)
    page.fail_on = {"#email"}

    result = GreenhouseAdapter().fill(page, cv, "", job=job)

    assert not result.success
    assert "#email" in result.error


def test_optional_failures_do_not_fail_the_attempt(cv, job):
    page = FakePage(selectors=GREENHOUSE_FIELDS)
    page.fail_on = {"#phone", 'input[type="file"]'}

    result = GreenhouseAdapter().fill(page, cv, "/tmp/resume.pdf", job=job)

    assert result.success
    assert result.fields_processed == 3


def test_ai_failure_skips_question_but_keeps_going(cv, job):
    page = FakePage(
        selectors=GREENHOUSE_FIELDS + ("#question_1",),
        textareas=[{"selector": "#question_1", "label": "Why Acme?", "value": ""}],
    )

    result = GreenhouseAdapter(StubMapper(error=QuotaExceededError("quota"))).fill(page, cv, "", job=job)

    assert result.success
    assert "#question_1" not in page.filled


def test_lever_opens_form_from_posting_page(cv, job):
    page = FakePage(url="https://jobs.lever.co/acme/1", selectors=(APPLY_LINK,))

    def reveal_form(selector):
        page.clicked.append(selector)
        page.selectors.update({'input[name="name"]', 'input[name="email"]'})

    page.click = reveal_form

    result = LeverAdapter().fill(page, cv, "", job=job)

    assert result.success
    assert page.clicked == [APPLY_LINK]
    assert page.filled['input[name="name"]'] == "Ada Lovelace"
    assert result.fields_processed == 2


def test_workday_reports_manual_completion(cv, job):
    page = FakePage(selectors=(APPLY_BUTTON,))

    result = WorkdayAdapter().fill(page, cv, "", job=job)

    assert result.success
    assert "manual completion" in result.message


def test_workday_without_apply_button_fails(cv, job):
    result = WorkdayAdapter().fill(FakePage(), cv, "", job=job)

    assert not result.success


def test_linkedin_requires_manual_authentication(cv, job):
    page = FakePage(url="https://www.linkedin.com/jobs/view/1")

    result = LinkedInAdapter().fill(page, cv, "", job=job)

    assert not result.success
    assert result.error == "LinkedIn Easy Apply requires manual authentication"
    assert page.filled == {}


def test_registry_covers_every_platform():
    adapters = build_adapters(None)

    assert set(adapters) == set(Platform)
    assert all(adapter.platform == platform for platform, adapter in adapters.items())
