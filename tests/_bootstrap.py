"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "SUPABASE_URL": "https://project.supabase.example",
    "SUPABASE_ANON_KEY": "test-anon-key",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "STATE_SIGNING_SECRET": "test-state-secret",
    "FITTRACK_DB_PATH": str(Path(tempfile.gettempdir()) / "fittrack-tests.db"),
    "REMINDERS_AUTOSTART": "false",
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
