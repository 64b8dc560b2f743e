"""Resolve a resume asset reference to a local file for upload."""

import hashlib
import logging
from pathlib import Path
from urllib.parse import urlparse

import requests

from config.settings import DATA_DIR

logger = logging.getLogger(__name__)

RESUME_CACHE_DIR = DATA_DIR / "resumes"
DOWNLOAD_TIMEOUT_SECONDS = 30


def resolve_resume(asset_ref: str, cache_dir: Path = RESUME_CACHE_DIR) -> str:
    """Return a local path for ``asset_ref``; downloads http(s) references.

    An empty string means no resume is available, in which case adapters
    skip the upload field.
    """
    if not asset_ref:
        return ""

    parsed = urlparse(asset_ref)
    if parsed.scheme not in ("http", "https"):
        path = Path(asset_ref).expanduser()
        if path.is_file():
            return str(path)
        logger.warning("Resume file %s does not exist", asset_ref)
        return ""

    suffix = Path(parsed.path).suffix or ".pdf"
    target = Path(cache_dir) / f"{hashlib.sha256(asset_ref.encode('utf-8')).hexdigest()[:32]}{suffix}"
    if target.is_file():
        return str(target)

    try:
        response = requests.get(asset_ref, timeout=DOWNLOAD_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as error:
        logger.error("Could not download resume %s: %s", asset_ref, error)
        return ""

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(response.content)
    logger.info("Downloaded resume to %s (%d bytes)", target, len(response.content))
    return str(target)
