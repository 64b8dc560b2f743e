import json

from conftest import FakeBackend, FakePage
from src.adapters.generic import GenericFormHandler
from src.agents.field_mapper import FieldMapper, compact_html
from src.agents.state import Platform
from src.services.ai_provider import AIProvider


def mapper_with(*responses):
    return FieldMapper(AIProvider(primary=FakeBackend("openai", responses=list(responses))))


FIELDS = [
    {"selector": "#fname", "label": "First name", "type": "text", "purpose": "firstName", "required": True},
    {"selector": "#lname", "label": "Last name", "type": "text", "purpose": "lastName", "required": True},
    {"selector": "#mail", "label": "Email", "type": "email", "purpose": "email", "required": True},
    {"selector": "#cv", "label": "Resume", "type": "file", "purpose": "resume", "required": False},
    {"selector": "#missing", "label": "Phone", "type": "tel", "purpose": "phone", "required": False},
]


def test_partial_fill_still_succeeds(cv, job):
    page = FakePage(selectors=("#fname", "#lname", "#mail", "#cv"))
    handler = GenericFormHandler(mapper_with(json.dumps(FIELDS)))

    result = handler.fill(page, cv, "/tmp/resume.pdf", job=job)

    assert result.success
    assert result.platform == Platform.GENERIC
    assert result.fields_processed == 4
    assert page.filled["#mail"] == "ada@example.com"
    assert page.uploaded["#cv"] == "/tmp/resume.pdf"


def test_field_errors_are_isolated(cv, job):
    page = FakePage(selectors=("#fname", "#lname", "#mail", "#cv"))
    page.fail_on = {"#lname"}
    handler = GenericFormHandler(mapper_with(json.dumps(FIELDS)))

    result = handler.fill(page, cv, "/tmp/resume.pdf", job=job)

    assert result.success
    assert result.fields_processed == 3


def test_custom_questions_and_cover_letter_use_generated_text(cv, job):
    fields = [
        {"selector": "#why", "label": "Why do you want this job?", "type": "textarea", "purpose": "customQuestion"},
        {"selector": "#letter", "label": "Cover letter", "type": "textarea", "purpose": "coverLetter"},
        {"selector": "#other", "label": "Favourite colour", "type": "text", "purpose": "favouriteColour"},
    ]
    page = FakePage(selectors=("#why", "#letter", "#other"))
    handler = GenericFormHandler(
        mapper_with(
            "```json\n" + json.dumps({"fields": fields}) + "\n```",
            "Because of the mission.",
            "Dear Acme team,",
        )
    )

    result = handler.fill(page, cv, "", job=job)

    assert result.fields_processed == 2
    assert page.filled == {"#why": "Because of the mission.", "#letter": "Dear Acme team,"}


def test_unparseable_analysis_fails_the_attempt(cv, job):
    handler = GenericFormHandler(mapper_with("I could not find a form."))

    result = handler.fill(FakePage(), cv, "", job=job)

    assert not result.success
    assert "form analysis" in result.error


def test_malformed_field_entries_are_dropped():
    mapper = mapper_with(json.dumps([{"label": "No selector"}, {"fieldName": "#ok", "purpose": "email"}]))

    fields = mapper.analyze_form("<form></form>")

    assert [field.selector for field in fields] == ["#ok"]
    assert fields[0].purpose == "email"


def test_compact_html_strips_noise():
    html = (
        "<script>var x = 1;</script><!-- tracking --><form>\n  <input id='a'>\n</form>"
        "<style>.a{}</style><svg><path d='M0 0'/></svg><noscript><img src='pixel.gif'></noscript>"
    )

    cleaned = compact_html(html)

    assert cleaned.startswith("<form> <input")
    assert 'id="a"' in cleaned
    for noise in ("script", "tracking", "style", "svg", "path", "noscript", "pixel.gif"):
        assert noise not in cleaned
    assert len(compact_html("x" * 100, limit=10)) == 10
