"""
Input loading for html2json.

Fetches markup from a URL (plain HTTP via requests, or a headless browser via
Crawl4AI when rendering is enabled) or reads it from a file, and loads spec
files. Enforces the configured size limits.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urlparse

import requests
from crawl4ai import AsyncWebCrawler, BrowserConfig, CacheMode, CrawlerRunConfig

from .config import Config
from .errors import InputError

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")


def is_url(text: str) -> bool:
    """True if text carries a URL scheme (single letters are drive names, not schemes)."""
    return len(urlparse(text).scheme) >= 2


def fetch_html(source: str, config: Optional[Config] = None) -> str:
    """
    Fetch HTML from a URL or read it from a file path.

    Args:
        source: http(s) URL or path to a file
        config: Configuration (defaults apply when omitted)

    Returns:
        Markup text
    """
    config = config or Config()

    if not is_url(source):
        return read_file(source, config)

    scheme = urlparse(source).scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise InputError(
            f"Unsupported URL scheme '{scheme}': only http and https are allowed",
            context={"url": source},
        )

    if config.http.render:
        return asyncio.run(render_html(source, config))
    return fetch_url(source, config)


def fetch_url(url: str, config: Config) -> str:
    """Fetch a page over plain HTTP."""
    logger.info(f"Fetching: {url}")
    try:
        response = requests.get(
            url,
            timeout=config.http.timeout,
            headers={"User-Agent": config.http.user_agent},
        )
        response.raise_for_status()
    except requests.RequestException as e:
        raise InputError(f"Failed to fetch {url}: {e}", context={"url": url}) from e

    _check_size(len(response.content), config.limits.max_html_size, "HTML input")
    return response.text


async def render_html(url: str, config: Config) -> str:
    """Fetch a page through a headless browser and return the rendered HTML."""
    browser_config = BrowserConfig(
        headless=True,
        verbose=False,
        user_agent=config.http.user_agent,
    )
    run_config = CrawlerRunConfig(
        cache_mode=CacheMode.BYPASS,
        page_timeout=int(config.http.timeout * 1000),
    )

    logger.info(f"Rendering: {url}")
    async with AsyncWebCrawler(config=browser_config) as crawler:
        result = await crawler.arun(url=url, config=run_config)

    if not result.success:
        raise InputError(f"Failed to render {url}: {result.error_message}", context={"url": url})

    html = result.html or ""
    _check_size(len(html.encode("utf-8")), config.limits.max_html_size, "HTML input")
    return html


def read_file(path: Union[str, Path], config: Config) -> str:
    """Read markup from a file."""
    path = Path(path)
    logger.info(f"Reading: {path}")
    try:
        _check_size(path.stat().st_size, config.limits.max_html_size, "HTML input")
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise InputError(f"Failed to read file '{path}': {e}", context={"path": str(path)}) from e


def load_spec(path: Union[str, Path], config: Optional[Config] = None) -> Any:
    """
    Load a spec from a JSON file.

    Args:
        path: Path to the spec file
        config: Configuration (defaults apply when omitted)

    Returns:
        Decoded JSON value, ready for parse_spec
    """
    config = config or Config()
    path = Path(path)
    try:
        _check_size(path.stat().st_size, config.limits.max_spec_size, "Spec file")
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise InputError(f"Failed to read spec file '{path}': {e}", context={"path": str(path)}) from e

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise InputError(f"Failed to parse spec JSON: {e}", context={"path": str(path)}) from e


def _check_size(size: int, limit: int, label: str) -> None:
    if size > limit:
        raise InputError(f"{label} exceeds maximum size of {limit} bytes", context={"size": size})
