import json

import pytest
import requests

from html2json import loader
from html2json.config import Config, HttpConfig, LimitsConfig, load_config
from html2json.errors import InputError
from html2json.loader import fetch_html, is_url, load_spec, read_file, render_html


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200):
        self.text = text
        self.content = text.encode("utf-8")
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeResult:
    def __init__(self, html: str, success: bool = True, error_message: str = ""):
        self.html = html
        self.success = success
        self.error_message = error_message


class FakeCrawler:
    """Stands in for AsyncWebCrawler; records the URLs it was asked to render."""

    result = FakeResult("<h1>Rendered</h1>")
    urls = []

    def __init__(self, config=None):
        self.config = config

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def arun(self, url, config=None):
        FakeCrawler.urls.append(url)
        return FakeCrawler.result


@pytest.fixture
def fake_crawler(monkeypatch):
    FakeCrawler.result = FakeResult("<h1>Rendered</h1>")
    FakeCrawler.urls = []
    monkeypatch.setattr(loader, "AsyncWebCrawler", FakeCrawler)
    return FakeCrawler


class TestConfig:
    """Test configuration loading and validation."""

    def test_defaults(self):
        config = Config()
        assert config.parser == "html.parser"
        assert config.limits.max_html_size == 100_000_000
        assert config.limits.max_spec_size == 1_048_576
        assert config.limits.max_regex_size == 1_000_000
        assert not config.http.render

    def test_load_config_with_aliases(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "parser": "lxml",
            "pretty": False,
            "limits": {"maxHtmlSize": 10, "maxRegexSize": 50},
            "http": {"timeout": 5, "userAgent": "test-agent", "render": True},
        }))

        config = load_config(path)

        assert config.parser == "lxml"
        assert not config.pretty
        assert config.limits.max_html_size == 10
        assert config.limits.max_spec_size == 1_048_576
        assert config.limits.max_regex_size == 50
        assert config.http.timeout == 5
        assert config.http.user_agent == "test-agent"
        assert config.http.render

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")


class TestReadInputs:
    """Files on disk."""

    def test_is_url(self):
        assert is_url("https://example.com")
        assert is_url("ftp://example.com")
        assert not is_url("page.html")
        assert not is_url("C:\\pages\\page.html")

    def test_read_file(self, tmp_path):
        path = tmp_path / "page.html"
        path.write_text("<h1>Hi</h1>", encoding="utf-8")
        assert fetch_html(str(path)) == "<h1>Hi</h1>"

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(InputError, match="Failed to read file"):
            read_file(tmp_path / "nope.html", Config())

    def test_html_size_limit(self, tmp_path):
        path = tmp_path / "page.html"
        path.write_text("<p>" + "x" * 100 + "</p>")
        config = Config(limits=LimitsConfig(max_html_size=50))
        with pytest.raises(InputError, match="exceeds maximum size"):
            fetch_html(str(path), config)

    def test_load_spec(self, tmp_path):
        path = tmp_path / "spec.json"
        path.write_text(json.dumps({"title": "h1"}))
        assert load_spec(path) == {"title": "h1"}

    def test_load_spec_invalid_json(self, tmp_path):
        path = tmp_path / "spec.json"
        path.write_text("{not json")
        with pytest.raises(InputError, match="Failed to parse spec JSON"):
            load_spec(path)

    def test_spec_size_limit(self, tmp_path):
        path = tmp_path / "spec.json"
        path.write_text(json.dumps({"title": "h1" * 20}))
        with pytest.raises(InputError, match="Spec file exceeds"):
            load_spec(path, Config(limits=LimitsConfig(max_spec_size=10)))


class TestFetch:
    """Plain HTTP fetching through requests."""

    def test_fetch_url(self, monkeypatch):
        calls = []

        def fake_get(url, timeout=None, headers=None):
            calls.append((url, timeout, headers))
            return FakeResponse("<h1>Remote</h1>")

        monkeypatch.setattr(loader.requests, "get", fake_get)
        config = Config(http=HttpConfig(timeout=3, user_agent="ua"))

        assert fetch_html("https://example.com/page", config) == "<h1>Remote</h1>"
        assert calls == [("https://example.com/page", 3, {"User-Agent": "ua"})]

    def test_http_error(self, monkeypatch):
        monkeypatch.setattr(loader.requests, "get", lambda url, **kwargs: FakeResponse("gone", 404))
        with pytest.raises(InputError, match="Failed to fetch"):
            fetch_html("http://example.com/missing")

    def test_connection_error(self, monkeypatch):
        def fail(url, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(loader.requests, "get", fail)
        with pytest.raises(InputError):
            fetch_html("http://example.com")

    def test_response_size_limit(self, monkeypatch):
        monkeypatch.setattr(loader.requests, "get", lambda url, **kwargs: FakeResponse("x" * 100))
        with pytest.raises(InputError, match="exceeds maximum size"):
            fetch_html("http://example.com", Config(limits=LimitsConfig(max_html_size=10)))

    @pytest.mark.parametrize("url", ["ftp://example.com/page", "file:///etc/passwd"])
    def test_unsupported_scheme(self, url):
        with pytest.raises(InputError, match="Unsupported URL scheme"):
            fetch_html(url)


class TestRender:
    """Headless rendering through Crawl4AI."""

    @pytest.mark.asyncio
    async def test_render_html(self, fake_crawler):
        html = await render_html("https://example.com", Config())
        assert html == "<h1>Rendered</h1>"
        assert fake_crawler.urls == ["https://example.com"]

    @pytest.mark.asyncio
    async def test_render_failure(self, fake_crawler):
        fake_crawler.result = FakeResult(None, success=False, error_message="timeout")
        with pytest.raises(InputError, match="Failed to render"):
            await render_html("https://example.com", Config())

    def test_fetch_html_uses_renderer_when_enabled(self, fake_crawler, monkeypatch):
        def no_requests(url, **kwargs):
            raise AssertionError("requests should not be used when rendering")

        monkeypatch.setattr(loader.requests, "get", no_requests)
        config = Config(http=HttpConfig(render=True))
        assert fetch_html("https://example.com", config) == "<h1>Rendered</h1>"
