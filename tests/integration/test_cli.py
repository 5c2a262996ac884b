"""Integration tests for the command line interface."""

import json
import logging

import pytest
from loguru import logger as loguru_logger
from typer.testing import CliRunner

from cli.commands import main as cli_main
from cli.commands.main import app, split_paragraphs
from tests.fixtures.fakes import FakeAdapter

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Config pointing the persistent store at a temporary directory."""
    monkeypatch.setattr("adaptran.utils.config_loader.load_dotenv", lambda: None)
    path = tmp_path / "config.yaml"
    path.write_text(
        "storage:\n"
        f"  directory: {tmp_path / 'store'}\n"
        "  persistent: true\n"
        "logging:\n"
        "  level: WARNING\n",
        encoding="utf-8"
    )
    return str(path)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo the logging setup each command performs."""
    yield
    package_logger = logging.getLogger("adaptran")
    package_logger.handlers = []
    package_logger.propagate = True
    loguru_logger.remove()


@pytest.fixture
def adapter(monkeypatch):
    """Route every provider to a fake adapter."""
    fake = FakeAdapter()
    monkeypatch.setattr(cli_main, "create_backend", lambda *args, **kwargs: fake)
    return fake


def invoke(config_file, *args):
    return runner.invoke(app, ["--config", config_file, *args])


def test_split_paragraphs():
    """Test paragraphs are separated by blank lines."""
    text = "First line\nstill first.\n\n\n  Second.  \n \nThird."

    assert split_paragraphs(text) == ["First line\nstill first.", "Second.", "Third."]
    assert split_paragraphs("\n\n") == []


def test_init_and_profile(config_file):
    """Test the profile persists between invocations."""
    result = invoke(config_file, "init", "toefl", "--score", "60")
    assert result.exit_code == 0
    assert "6000" in result.output

    result = invoke(config_file, "profile")
    assert result.exit_code == 0
    assert "TOEFL" in result.output
    assert "upper-intermediate" in result.output


def test_init_rejects_unknown_exam(config_file):
    """Test invalid exam names exit with an error."""
    result = invoke(config_file, "init", "sat")

    assert result.exit_code == 1
    assert "Unknown exam" in result.output


def test_mark_and_review(config_file):
    """Test marking words and recording a review."""
    invoke(config_file, "init", "custom")

    result = invoke(config_file, "mark", "obfuscate", "--unknown", "--translation", "混淆", "--difficulty", "9")
    assert result.exit_code == 0
    assert "marked unknown" in result.output

    result = invoke(config_file, "review")
    assert result.exit_code == 0
    assert "Nothing due" in result.output

    result = invoke(config_file, "review", "--done", "obfuscate")
    assert result.exit_code == 0
    assert "1 reviews" in result.output

    result = invoke(config_file, "review", "--done", "obfuscate", "--recalled")
    assert result.exit_code == 0
    assert "2 reviews" in result.output
    assert "Vocabulary estimate" in result.output

    result = invoke(config_file, "review", "--done", "never-marked")
    assert result.exit_code == 1


def test_translate_then_cache(config_file, adapter, tmp_path):
    """Test a file is translated once and then served from the cache."""
    source = tmp_path / "article.txt"
    source.write_text(
        "The committee deliberated at length.\n\nUbiquitous sensors collect environmental data.\n",
        encoding="utf-8"
    )
    output = tmp_path / "out.json"

    result = invoke(config_file, "translate", str(source), "-o", str(output))
    assert result.exit_code == 0, result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert [p["status"] for p in data] == ["translated", "translated"]
    assert data[0]["words"][0]["original"] == "committee"
    assert adapter.call_count == 1

    result = invoke(config_file, "translate", str(source), "-o", str(output))
    assert result.exit_code == 0
    data = json.loads(output.read_text(encoding="utf-8"))
    assert [p["status"] for p in data] == ["cached", "cached"]
    assert adapter.call_count == 1

    result = invoke(config_file, "cache-stats")
    assert result.exit_code == 0
    assert "DiskStore" in result.output

    result = invoke(config_file, "clear-cache", "--yes")
    assert result.exit_code == 0


def test_translate_failure_exit_code(config_file, monkeypatch, tmp_path):
    """Test untranslated paragraphs give exit code 2."""
    def refuse(prompt):
        from adaptran.core.exceptions import ClientError
        raise ClientError("fake", "unauthorized", 401)

    fake = FakeAdapter(responder=refuse)
    monkeypatch.setattr(cli_main, "create_backend", lambda *args, **kwargs: fake)
    source = tmp_path / "article.txt"
    source.write_text("The committee deliberated at length.", encoding="utf-8")

    result = invoke(config_file, "translate", str(source))

    assert result.exit_code == 2


def test_translate_missing_file(config_file, tmp_path):
    """Test a missing input file is reported."""
    result = invoke(config_file, "translate", str(tmp_path / "missing.txt"))

    assert result.exit_code == 1


def test_quick(config_file, monkeypatch):
    """Test single-word lookup."""
    fake = FakeAdapter(script=["意外发现"])
    monkeypatch.setattr(cli_main, "create_backend", lambda *args, **kwargs: fake)

    result = invoke(config_file, "quick", "serendipity")

    assert result.exit_code == 0
    assert "意外发现" in result.output


def test_export_import(config_file, tmp_path):
    """Test exported profiles import back."""
    invoke(config_file, "init", "gre")
    exported = tmp_path / "backup.json"

    assert invoke(config_file, "export", str(exported)).exit_code == 0
    data = json.loads(exported.read_text(encoding="utf-8"))
    assert data["profile"]["examType"] == "gre"
    assert "api_key" not in data["settings"]

    invoke(config_file, "init", "cet4")
    assert invoke(config_file, "import", str(exported)).exit_code == 0
    assert "GRE" in invoke(config_file, "profile").output
