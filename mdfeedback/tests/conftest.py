"""
Shared fixtures for md-feedback tests: sample documents, temporary
markdown files and a clean configuration for every test.
"""

from pathlib import Path

import pytest

from mdfeedback.config import set_feedback_config

FIXED_NOW = "2025-03-01T10:00:00.000Z"

SCENARIO_DOC = '## A\nSome line\n<!-- USER_MEMO id="m1" color="red" : fix this -->\n'

AUTH_DOC = """# Plan

## Auth
Use JWT tokens.
<!-- USER_MEMO id="f1" color="red" : rotate keys -->
Store sessions in Redis.
<!-- USER_MEMO id="f2" color="red" : use TTL -->
Password hashing with bcrypt.
<!-- USER_MEMO id="q1" color="blue" : which cost factor? -->

## Deploy
Ship it.
"""

GATED_DOC = AUTH_DOC + """
<!-- GATE
  id="g1"
  type="merge"
  status="blocked"
  blockedBy="q1"
  canProceedIf="cost factor decided"
  doneDefinition="all memos resolved"
-->
"""

_ENV_VARS = (
    "MDFEEDBACK_PROBE_RADIUS",
    "MDFEEDBACK_DEFAULT_OWNER",
    "MDFEEDBACK_DEFAULT_SOURCE",
    "MDFEEDBACK_BANNER_MARKER",
    "MDFEEDBACK_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Reset the global config and MDFEEDBACK_* variables around each test."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    set_feedback_config(None)
    yield
    set_feedback_config(None)


@pytest.fixture
def scenario_doc() -> str:
    return SCENARIO_DOC


@pytest.fixture
def auth_doc() -> str:
    return AUTH_DOC


@pytest.fixture
def gated_doc() -> str:
    return GATED_DOC


@pytest.fixture
def md_file(tmp_path) -> Path:
    """A plan file with three v0.3 memos and one gate."""
    path = tmp_path / "plan.md"
    path.write_text(GATED_DOC, encoding="utf-8")
    return path


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
