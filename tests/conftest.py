import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture
def formatter():
    """A fresh formatter with the default rule set and HTML escaping on."""
    from src.legalassist.services.formatter import ChatFormatter

    return ChatFormatter()


@pytest.fixture(autouse=True)
def _default_formatter_from_env(monkeypatch):
    """Rebuild the process-wide formatter per test so env overrides apply."""
    from src.legalassist.services import formatter as fmt

    monkeypatch.setattr(fmt, "_formatter", None)
    monkeypatch.delenv("LEGALASSIST_FORMATTER_ESCAPE_HTML", raising=False)
    monkeypatch.delenv("LEGALASSIST_CURSOR_GLYPH", raising=False)
