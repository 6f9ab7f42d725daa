"""Consent-gated Sentry reporting with PII scrubbing."""

import json
import os
import re
from pathlib import Path

import sentry_sdk

from _version import __version__

CONSENT_PATH = "~/.lumascope/telemetry_consent"

_HOME = os.path.expanduser("~")
_USERNAME = os.path.basename(_HOME)
_PATH_PATTERN = re.compile(r"/Users/[^/\s]+|/home/[^/\s]+|C:\\Users\\[^\\\s]+")
_SENSITIVE_KEYS = ("token", "auth", "key", "secret", "password", "dsn")


def has_consent(consent_path: str = CONSENT_PATH) -> bool:
    path = Path(os.path.expanduser(consent_path))
    return path.is_file() and path.read_text().strip() == "yes"


def _redact(section: dict):
    for key in list(section):
        if any(s in key.lower() for s in _SENSITIVE_KEYS):
            section[key] = "<REDACTED>"


def strip_pii(event: dict, hint: dict) -> dict:
    """Sentry before_send hook: hide home paths, usernames and secrets."""
    text = json.dumps(event)
    text = text.replace(_HOME, "<HOME>")
    if _USERNAME:
        text = text.replace(_USERNAME, "<USER>")
    text = _PATH_PATTERN.sub("<REDACTED_PATH>", text)
    event = json.loads(text)

    _redact(event.get("extra", {}))
    for ctx in event.get("contexts", {}).values():
        if isinstance(ctx, dict):
            _redact(ctx)
    return event


def init_telemetry(consent_path: str = CONSENT_PATH) -> bool:
    """Initialise Sentry. Without consent the DSN is empty and nothing is sent.

    Returns True when events will actually be delivered.
    """
    dsn = os.environ.get("SENTRY_DSN", "") if has_consent(consent_path) else ""
    sentry_sdk.init(
        dsn=dsn,
        release=f"lumascope@{__version__}",
        environment=os.environ.get("SENTRY_ENV", "development"),
        before_send=strip_pii,
        max_breadcrumbs=50,
    )
    return bool(dsn)


def capture_with_context(e: Exception, source: str, context: dict):
    """Capture an exception tagged by source, deduplicated by error type."""
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("source", source)
        scope.fingerprint = ["lumascope", source, type(e).__name__]
        scope.set_context("overlay", context)
        sentry_sdk.capture_exception(e, scope=scope)
