"""End-to-end tests for the eventbench CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from eventbench import __version__
from eventbench.cli.app import app

if TYPE_CHECKING:
    from pathlib import Path

    from tests.conftest import FakeEventStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "EVENTBENCH_ADDRESS",
        "EVENTBENCH_WORKERS",
        "EVENTBENCH_DURATION",
        "EVENTBENCH_TIMEOUT",
        "EVENTBENCH_RESERVOIR_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_version_short_flag():
    """-V also prints version."""
    result = runner.invoke(app, ["-V"])
    assert result.exit_code == 0
    assert f"eventbench {__version__}" in result.output


def test_help_output():
    """--help lists every command."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("load", "bench", "e2e", "shell"):
        assert command in result.output


def test_bench_help():
    """eventbench bench --help shows run and report options."""
    result = runner.invoke(app, ["bench", "--help"])
    assert result.exit_code == 0
    for option in ("--addr", "--suites", "--workers", "--duration", "--output"):
        assert option in result.output


# ---------------------------------------------------------------------------
# Tests: eventbench e2e
# ---------------------------------------------------------------------------


@pytest.mark.timeout(60)
def test_e2e_passes(sync_event_store: FakeEventStore):
    """All conformance suites pass against a well-behaved store."""
    result = runner.invoke(app, ["e2e", "--addr", sync_event_store.address])
    assert result.exit_code == 0, result.output


@pytest.mark.timeout(30)
def test_e2e_filter(sync_event_store: FakeEventStore):
    """--suites restricts which conformance suites run."""
    result = runner.invoke(app, ["e2e", "--addr", sync_event_store.address, "--suites", "ingest"])
    assert result.exit_code == 0, result.output
    assert not any(c.startswith("GARBAGE") for c in sync_event_store.commands)


@pytest.mark.timeout(30)
def test_e2e_unreachable_exits_1(closed_address: str):
    """A store that refuses connections fails every suite."""
    result = runner.invoke(app, ["e2e", "--addr", closed_address])
    assert result.exit_code == 1


def test_e2e_rejects_load_options(sync_event_store: FakeEventStore):
    """Conformance runs have no worker pool, so load sizing flags are refused."""
    result = runner.invoke(app, ["e2e", "--addr", sync_event_store.address, "--workers", "4"])
    assert result.exit_code == 2
    assert not sync_event_store.commands


def test_invalid_env_config_exits_1(monkeypatch: pytest.MonkeyPatch):
    """A bad environment value is reported, not raised."""
    monkeypatch.setenv("EVENTBENCH_WORKERS", "lots")
    result = runner.invoke(app, ["e2e"])
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# Tests: eventbench load / bench
# ---------------------------------------------------------------------------


@pytest.mark.slow
@pytest.mark.timeout(60)
def test_load_passes(sync_event_store: FakeEventStore):
    """The load suite runs every phase and exits 0."""
    result = runner.invoke(
        app,
        ["load", "--addr", sync_event_store.address, "--workers", "2", "--duration", "0.3"],
    )
    assert result.exit_code == 0, result.output


@pytest.mark.slow
@pytest.mark.timeout(60)
def test_bench_writes_reports(sync_event_store: FakeEventStore, tmp_path: Path):
    """The bench suite writes an HTML and a JSON report."""
    out = tmp_path / "results"
    result = runner.invoke(
        app,
        [
            "bench",
            "--addr",
            sync_event_store.address,
            "--workers",
            "2",
            "--duration",
            "0.3",
            "--output",
            str(out),
        ],
    )
    assert result.exit_code == 0, result.output
    assert len(list(out.glob("benchmark_report_*.html"))) == 1
    assert len(list(out.glob("benchmark_report_*.json"))) == 1


@pytest.mark.slow
@pytest.mark.timeout(60)
def test_bench_no_report(sync_event_store: FakeEventStore, tmp_path: Path):
    """--no-report skips file output."""
    out = tmp_path / "results"
    result = runner.invoke(
        app,
        [
            "bench",
            "--addr",
            sync_event_store.address,
            "--workers",
            "1",
            "--duration",
            "0.2",
            "--output",
            str(out),
            "--no-report",
        ],
    )
    assert result.exit_code == 0, result.output
    assert not out.exists()


def test_bench_rejects_unknown_format(tmp_path: Path):
    """Only html and json reports exist."""
    result = runner.invoke(app, ["bench", "--format", "csv", "--output", str(tmp_path)])
    assert result.exit_code == 2


# ---------------------------------------------------------------------------
# Tests: eventbench shell
# ---------------------------------------------------------------------------


@pytest.mark.timeout(30)
def test_shell_round_trip(sync_event_store: FakeEventStore):
    """Commands typed at the prompt are sent and replies printed as JSON."""
    result = runner.invoke(
        app,
        ["shell", "--addr", sync_event_store.address],
        input="EVENT in:ns entity:u1 loc:ca\n\nQUERY in:ns where:(loc:ca)\nexit\nEVENT in:ns entity:never\n",
    )
    assert result.exit_code == 0, result.output
    assert '"status": "OK"' in result.output
    assert '"entity": "u1"' in result.output
    assert sync_event_store.commands == [
        "EVENT in:ns entity:u1 loc:ca",
        "QUERY in:ns where:(loc:ca)",
    ]


@pytest.mark.timeout(30)
def test_shell_unreachable_exits_1(closed_address: str):
    result = runner.invoke(app, ["shell", "--addr", closed_address], input="exit\n")
    assert result.exit_code == 1
