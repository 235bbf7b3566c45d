from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def readme_html() -> str:
    """HTML document with one section per documented feature."""
    return (FIXTURES / "readme_tests.html").read_text(encoding="utf-8")


@pytest.fixture
def rss_xml() -> str:
    """RSS feed whose <link> text follows the void element."""
    return (FIXTURES / "rss.xml").read_text(encoding="utf-8")
