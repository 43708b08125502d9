# File: tests/test_cli.py
"""CLI tests with click.testing.CliRunner.

The async helpers (`run_verify`, `run_crawl`, `run_research`, `fetch_hadith`)
are patched so no command touches the network.
"""
import asyncio
import json

import ithbat.cli as cli_module
import pytest
from click.testing import CliRunner

from ithbat.cli import cli
from ithbat.crawler.models import CrawledPage
from ithbat.errors import SearchFailure
from ithbat.events import ResearchStepEvent
from ithbat.hadith import HadithResult
from ithbat.verification import VerificationResponse, VerificationResult

RESPONSE = VerificationResponse(
    results=[
        VerificationResult(
            url="https://sunnah.com/bukhari:1",
            title="Bukhari 1",
            content="Actions are judged by intentions",
            source="Sunnah.com",
            relevance="high",
        )
    ],
    query="actions intentions hadith",
    total_found=1,
)


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run every command where no configs/default.yaml exists."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def fake_verify(monkeypatch):
    calls = []

    async def _verify(cfg, query, claim_type, claim, profile):
        calls.append((query, claim_type, claim, profile))
        return RESPONSE

    monkeypatch.setattr(cli_module, "run_verify", _verify)
    return calls


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "Ithbat, version" in result.output


def test_show_config_defaults():
    result = CliRunner().invoke(cli, ["config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["max_content_length"] == 4000
    assert set(data["profiles"]) == {"quick", "standard", "deep"}


def test_show_config_from_file(tmp_path):
    cfg_file = tmp_path / "custom.yaml"
    cfg_file.write_text("search_hint: sunnah hadith\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 0
    assert json.loads(result.output)["search_hint"] == "sunnah hadith"


def test_invalid_config_exits(tmp_path):
    cfg_file = tmp_path / "bad.yaml"
    cfg_file.write_text("fetch_timeout: -5\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 1
    assert "Failed to load configuration" in result.output


def test_verify_stdout(fake_verify):
    result = CliRunner().invoke(cli, ["verify", "actions intentions", "--type", "hadith", "--profile", "quick"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["totalFound"] == 1
    assert data["results"][0]["relevance"] == "high"
    assert fake_verify == [("actions intentions", "hadith", "", "quick")]


def test_verify_writes_reports(tmp_path, fake_verify):
    json_path = tmp_path / "out" / "report.json"
    html_path = tmp_path / "out" / "report.html"
    result = CliRunner().invoke(
        cli,
        ["verify", "actions intentions", "--claim", "actions are judged by intentions",
         "--json", str(json_path), "--html", str(html_path), "--pretty"],
    )
    assert result.exit_code == 0
    assert "JSON report" in result.output and "HTML report" in result.output
    assert json.loads(json_path.read_text(encoding="utf-8"))["query"] == "actions intentions hadith"
    html = html_path.read_text(encoding="utf-8")
    assert "actions are judged by intentions" in html
    assert "https://sunnah.com/bukhari:1" in html


def test_verify_failure_exits(monkeypatch):
    async def _fail(*args):
        raise SearchFailure("search engine unreachable")

    monkeypatch.setattr(cli_module, "run_verify", _fail)
    result = CliRunner().invoke(cli, ["verify", "fasting rules"])
    assert result.exit_code == 1
    assert "Verification failed: search engine unreachable" in result.output


def test_verify_timeout_exits(monkeypatch):
    async def _slow(*args):
        await asyncio.sleep(5)

    monkeypatch.setattr(cli_module, "run_verify", _slow)
    result = CliRunner().invoke(cli, ["verify", "fasting rules", "--timeout", "0.05"])
    assert result.exit_code == 1
    assert "did not finish" in result.output


def test_verify_rejects_unknown_type():
    result = CliRunner().invoke(cli, ["verify", "fasting rules", "--type", "poetry"])
    assert result.exit_code == 2


def test_crawl_prints_pages(monkeypatch):
    async def _crawl(cfg, query, profile):
        return [CrawledPage(url="https://quran.com/2/183", title="Al-Baqarah 183", content="Fasting is prescribed",
                            depth=0, source="Quran.com")]

    monkeypatch.setattr(cli_module, "run_crawl", _crawl)
    result = CliRunner().invoke(cli, ["crawl", "fasting prescribed"])
    assert result.exit_code == 0
    pages = json.loads(result.output)
    assert pages == [{"url": "https://quran.com/2/183", "title": "Al-Baqarah 183", "depth": 0,
                      "source": "Quran.com", "content": "Fasting is prescribed"}]


def test_research_streams_answer(monkeypatch):
    async def _research(cfg, query, profile, session_id, language, emit):
        emit(ResearchStepEvent(type="step_start", step="understanding"))
        emit(ResearchStepEvent(type="response_start"))
        emit(ResearchStepEvent(type="response_content", content="The answer.\n\n"))
        emit(ResearchStepEvent(type="done"))

    monkeypatch.setattr(cli_module, "run_research", _research)
    result = CliRunner().invoke(cli, ["research", "what is zakat"])
    assert result.exit_code == 0
    assert result.stdout == "The answer.\n\n"
    assert "understanding" in result.stderr


def test_research_error_event_exits(monkeypatch):
    async def _research(cfg, query, profile, session_id, language, emit):
        emit(ResearchStepEvent(type="error", error="search engine unreachable"))

    monkeypatch.setattr(cli_module, "run_research", _research)
    result = CliRunner().invoke(cli, ["research", "what is zakat", "--events"])
    assert result.exit_code == 1
    assert '"type":"error"' in result.output
    assert "Research failed: search engine unreachable" in result.output


def test_hadith_command(monkeypatch):
    async def _fetch(cfg, collection, number):
        if number == 1:
            return HadithResult(english="Actions are by intentions", arabic="إنما الأعمال بالنيات",
                                collection=collection, number=number)
        return None

    monkeypatch.setattr(cli_module, "fetch_hadith", _fetch)
    runner = CliRunner()

    result = runner.invoke(cli, ["hadith", "bukhari", "1"])
    assert result.exit_code == 0
    assert "bukhari 1" in result.output
    assert "Actions are by intentions" in result.output

    missing = runner.invoke(cli, ["hadith", "bukhari", "99999"])
    assert missing.exit_code == 1
    assert "not found" in missing.output

    assert runner.invoke(cli, ["hadith", "unknown", "1"]).exit_code == 2


def test_show_config_masks_api_key(tmp_path):
    cfg_file = tmp_path / "keyed.yaml"
    cfg_file.write_text("summarizer:\n  backend: openrouter\n  api_key: sk-or-very-secret\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 0
    assert "sk-or-very-secret" not in result.output
    assert json.loads(result.stdout)["summarizer"]["api_key"] == "**********"
