# File: tests/test_fetcher.py
# PageFetcher against local aiohttp servers
from __future__ import annotations

import asyncio

import pytest
from aiohttp import web
from conftest import static

from ithbat.crawler.fetcher import PageFetcher

ARTICLE = """
<html>
  <head><title>Intentions &amp; deeds</title><style>.x {color: red}</style></head>
  <body>
    <header>Site header</header>
    <nav><a href="/nav-link">Menu</a></nav>
    <main>
      <h1>Hadith 1</h1>
      <p>Actions are   judged by
         intentions.</p>
      <a href="/bukhari:2">Next</a>
      <script>var tracking = true;</script>
    </main>
    <footer>Copyright</footer>
  </body>
</html>
"""


@pytest.fixture()
def fast_config(config):
    return config.model_copy(update={"fetch_timeout": 0.5, "retry_times": 2})


@pytest.mark.asyncio()
async def test_fetch_normalises_text(serve_app, config):
    app = web.Application()
    app.router.add_get("/page", static(ARTICLE))
    base = await serve_app(app)

    async with PageFetcher(config) as fetcher:
        text = await fetcher.fetch(f"{base}/page")
        page = await fetcher.fetch_page(f"{base}/page")

    assert text == "Hadith 1 Actions are judged by intentions. Next"
    assert "tracking" not in text and "Copyright" not in text and "Menu" not in text
    assert page.title == "Intentions & deeds"
    assert f"{base}/bukhari:2" in page.links
    assert f"{base}/nav-link" in page.links


@pytest.mark.asyncio()
async def test_fetch_truncates_content(serve_app, config):
    body = "<html><body><p>" + "word " * 2000 + "</p></body></html>"
    app = web.Application()
    app.router.add_get("/long", static(body))
    base = await serve_app(app)

    async with PageFetcher(config) as fetcher:
        text = await fetcher.fetch(f"{base}/long")
    assert len(text) == config.max_content_length


@pytest.mark.asyncio()
async def test_404_returns_empty(serve_app, config):
    base = await serve_app(web.Application())
    async with PageFetcher(config) as fetcher:
        assert await fetcher.fetch(f"{base}/missing") == ""
        assert await fetcher.fetch_page(f"{base}/missing") is None


@pytest.mark.asyncio()
async def test_timeout_returns_empty_without_retry(serve_app, fast_config):
    calls = {"n": 0}

    async def slow(_):
        calls["n"] += 1
        await asyncio.sleep(2)
        return web.Response(text="<p>late</p>", content_type="text/html")

    app = web.Application()
    app.router.add_get("/slow", slow)
    base = await serve_app(app)

    async with PageFetcher(fast_config) as fetcher:
        assert await fetcher.fetch(f"{base}/slow") == ""
    assert calls["n"] == 1


@pytest.mark.asyncio()
async def test_retry_on_server_error(serve_app, fast_config, monkeypatch):
    monkeypatch.setattr(PageFetcher, "_BACKOFF_BASE", 0.01)
    calls = {"n": 0}

    async def flaky(_):
        calls["n"] += 1
        if calls["n"] <= 2:
            return web.Response(status=503)
        return web.Response(text="<p>Recovered</p>", content_type="text/html")

    app = web.Application()
    app.router.add_get("/flaky", flaky)
    base = await serve_app(app)

    async with PageFetcher(fast_config) as fetcher:
        assert await fetcher.fetch(f"{base}/flaky") == "Recovered"
    assert calls["n"] == 3


@pytest.mark.asyncio()
async def test_non_html_is_rejected(serve_app, config):
    app = web.Application()
    app.router.add_get("/img", static("PNG", content_type="image/png"))
    base = await serve_app(app)
    async with PageFetcher(config) as fetcher:
        assert await fetcher.fetch(f"{base}/img") == ""


@pytest.mark.asyncio()
async def test_fetch_json(serve_app, config):
    app = web.Application()
    app.router.add_get("/data.json", static('{"hadiths": [{"text": "x"}]}', content_type="application/json"))
    app.router.add_get("/broken.json", static("{nope", content_type="application/json"))
    base = await serve_app(app)

    async with PageFetcher(config) as fetcher:
        assert await fetcher.fetch_json(f"{base}/data.json") == {"hadiths": [{"text": "x"}]}
        assert await fetcher.fetch_json(f"{base}/broken.json") is None
        assert await fetcher.fetch_json(f"{base}/absent.json") is None


class FakeRenderer:
    def __init__(self, html: str = "", exc: Exception | None = None) -> None:
        self.html = html
        self.exc = exc
        self.urls: list[str] = []

    async def render(self, url: str) -> str:
        self.urls.append(url)
        if self.exc:
            raise self.exc
        return self.html


@pytest.mark.asyncio()
async def test_browser_path_only_for_javascript_sites(config):
    cfg = config.model_copy(update={"browser": config.browser.model_copy(update={"enabled": True})})
    renderer = FakeRenderer("<html><title>Al-Fatiha</title><main>In the name of Allah</main></html>")

    async with PageFetcher(cfg, renderer=renderer) as fetcher:
        page = await fetcher.fetch_page("https://quran.com/1")
    assert renderer.urls == ["https://quran.com/1"]
    assert page.title == "Al-Fatiha"
    assert page.text == "In the name of Allah"


@pytest.mark.asyncio()
async def test_browser_failure_returns_empty(config):
    cfg = config.model_copy(update={"browser": config.browser.model_copy(update={"enabled": True})})
    renderer = FakeRenderer(exc=RuntimeError("chromium crashed"))
    async with PageFetcher(cfg, renderer=renderer) as fetcher:
        assert await fetcher.fetch("https://quran.com/2") == ""


@pytest.mark.asyncio()
async def test_browser_disabled_uses_plain_http(serve_app, config):
    renderer = FakeRenderer("<p>rendered</p>")
    app = web.Application()
    app.router.add_get("/p", static("<p>plain</p>"))
    base = await serve_app(app)
    async with PageFetcher(config, renderer=renderer) as fetcher:
        assert await fetcher.fetch(f"{base}/p") == "plain"
    assert renderer.urls == []


@pytest.mark.asyncio()
async def test_requires_context_manager(config):
    fetcher = PageFetcher(config)
    with pytest.raises(RuntimeError):
        await fetcher.fetch_raw("http://localhost/")
