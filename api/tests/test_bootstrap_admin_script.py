from __future__ import annotations

import subprocess
import sys
from pathlib import Path


SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "bootstrap_admin.py"


def _run_script(*args: str) -> str:
    completed = subprocess.run(
        [sys.executable, str(SCRIPT_PATH), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def test_bootstrap_script_emits_sql_for_uid_target() -> None:
    output = _run_script("--uid", "firebase-uid-123", "--role", "user", "--status", "pending")

    assert "update users" in output
    assert "set role = 'user', status = 'pending'" in output
    assert "where uid = 'firebase-uid-123';" in output


def test_bootstrap_script_emits_sql_for_email_target() -> None:
    output = _run_script("--email", "Admin@SignalX.com")

    assert "set role = 'admin', status = 'approved'" in output
    assert "where lower(email) = lower('Admin@SignalX.com');" in output


def test_bootstrap_script_quotes_embedded_apostrophes() -> None:
    output = _run_script("--email", "o'brien@example.in")

    assert "lower('o''brien@example.in')" in output
