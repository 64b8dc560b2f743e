import requests

from src.services.resume_assets import resolve_resume


class FakeResponse:
    content = b"%PDF-1.4 resume"

    def raise_for_status(self):
        pass


def test_local_file_is_used_directly(tmp_path):
    resume = tmp_path / "resume.pdf"
    resume.write_bytes(b"%PDF")

    assert resolve_resume(str(resume), cache_dir=tmp_path / "cache") == str(resume)


def test_missing_file_and_empty_ref_resolve_to_nothing(tmp_path):
    assert resolve_resume("", cache_dir=tmp_path) == ""
    assert resolve_resume(str(tmp_path / "nope.pdf"), cache_dir=tmp_path) == ""


def test_remote_resume_is_downloaded_once(tmp_path, monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append(url)
        return FakeResponse()

    monkeypatch.setattr(requests, "get", fake_get)
    url = "https://storage.example.com/resumes/ada.pdf"

    first = resolve_resume(url, cache_dir=tmp_path)
    second = resolve_resume(url, cache_dir=tmp_path)

    assert first == second
    assert first.endswith(".pdf")
    assert open(first, "rb").read() == b"%PDF-1.4 resume"
    assert calls == [url]


def test_download_failure_resolves_to_nothing(tmp_path, monkeypatch):
    def fake_get(url, timeout):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(requests, "get", fake_get)

    assert resolve_resume("https://storage.example.com/ada.pdf", cache_dir=tmp_path) == ""
