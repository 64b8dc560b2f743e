"""Platform classifier: maps a rendered page to a known ATS or generic."""

import re
from typing import Optional
from urllib.parse import urlparse

from src.agents.state import Platform

# Hostname suffixes owned by each vendor.
_HOSTS = (
    (Platform.GREENHOUSE, ("greenhouse.io",)),
    (Platform.LEVER, ("lever.co",)),
    (Platform.WORKDAY, ("myworkdayjobs.com", "myworkdaysite.com")),
)

# Vendor hooks that show up in embedded forms on company domains.
_DOM_MARKERS = (
    (Platform.GREENHOUSE, re.compile(r"grnhse_app|boards\.greenhouse\.io|greenhouse-job-board|id=\"greenhouse", re.I)),
    (Platform.LEVER, re.compile(r"lever-frame|jobs\.lever\.co|lever-jobs-embed", re.I)),
    (Platform.WORKDAY, re.compile(r"data-automation-id=\"(jobPostingApplyButton|legalNameSection_firstName)\"|myworkdayjobs\.com", re.I)),
)


def _host_matches(host: str, suffix: str) -> bool:
    return host == suffix or host.endswith("." + suffix)


def classify(url: str, html: Optional[str] = "") -> Platform:
    """Classify a page by its URL and DOM markers.

    Pure and deterministic: no network access, same input gives same output.
    Hostnames win over DOM markers; anything unrecognised is ``GENERIC``.
    """
    parsed = urlparse(url or "")
    host = (parsed.hostname or "").lower()
    path = (parsed.path or "").lower()

    for platform, suffixes in _HOSTS:
        if any(_host_matches(host, suffix) for suffix in suffixes):
            return platform

    if _host_matches(host, "linkedin.com") and path.startswith("/jobs"):
        return Platform.LINKEDIN

    markup = html or ""
    for platform, marker in _DOM_MARKERS:
        if marker.search(markup):
            return platform

    return Platform.GENERIC
