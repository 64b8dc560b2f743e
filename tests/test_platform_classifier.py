import pytest

from src.adapters.classifier import classify
from src.agents.state import Platform


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://boards.greenhouse.io/acme/jobs/123", Platform.GREENHOUSE),
        ("https://job-boards.eu.greenhouse.io/acme/jobs/123", Platform.GREENHOUSE),
        ("https://jobs.lever.co/acme/abc-123", Platform.LEVER),
        ("https://acme.wd5.myworkdayjobs.com/en-US/careers/job/123", Platform.WORKDAY),
        ("https://www.linkedin.com/jobs/view/123456", Platform.LINKEDIN),
        ("https://careers.acme.com/apply/123", Platform.GENERIC),
    ],
)
def test_classifies_by_hostname(url, expected):
    assert classify(url, "") == expected


def test_lookalike_hosts_are_not_trusted():
    assert classify("https://greenhouse.io.evil.example/apply", "") == Platform.GENERIC
    assert classify("https://notlever.co/jobs/1", "") == Platform.GENERIC


def test_linkedin_outside_jobs_is_generic():
    assert classify("https://www.linkedin.com/company/acme", "") == Platform.GENERIC


def test_embedded_forms_are_detected_from_markup():
    greenhouse = '<div id="grnhse_app"></div><script src="https://boards.greenhouse.io/embed/job_board/js"></script>'
    lever = '<iframe class="lever-frame" src="https://jobs.lever.co/acme"></iframe>'
    workday = '<a data-automation-id="jobPostingApplyButton">Apply</a>'

    assert classify("https://acme.com/careers/1", greenhouse) == Platform.GREENHOUSE
    assert classify("https://acme.com/careers/1", lever) == Platform.LEVER
    assert classify("https://acme.com/careers/1", workday) == Platform.WORKDAY


def test_hostname_wins_over_markup():
    markup = '<iframe class="lever-frame"></iframe>'

    assert classify("https://boards.greenhouse.io/acme/jobs/1", markup) == Platform.GREENHOUSE


def test_classification_is_deterministic():
    url, html = "https://acme.com/jobs", "<form><input name='email'></form>"

    assert {classify(url, html) for _ in range(5)} == {Platform.GENERIC}
