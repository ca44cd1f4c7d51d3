import pytest
from pathlib import Path

from api_doc_sync.parser.base import ParseContext
from api_doc_sync.parser.errors import ErrorList
from api_doc_sync.parser.pysource import PySourceParser
from api_doc_sync.sync.models import Target
from api_doc_sync.sync.overlay import Overlays


@pytest.fixture(scope="session")
def fixture_app():
    """Sample application with ``users`` and ``billing`` packages."""
    return Path(__file__).parent / "fixtures" / "app"


@pytest.fixture
def make_parser():
    """Build a parser over an app root, optionally with overlay targets."""

    def _make(app_root: Path, targets: list[Target] | None = None, max_errors: int = 0):
        overlays = Overlays(app_root, targets or [])
        ctx = ParseContext(app_root=overlays.app_root, errors=ErrorList(max_errors), overlay=overlays)
        return PySourceParser(ctx), ctx

    return _make
