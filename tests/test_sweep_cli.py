"""Tests for the sweep command-line entry point."""

import pytest

import sweep
from infrastructure.service_container import ServiceConfig, ServiceContainer
from tests.conftest import FakeClock


def test_once_on_empty_database(temp_db_path):
    assert sweep.main(["--db", temp_db_path, "--once"]) == 0


def test_rejects_non_positive_interval(temp_db_path):
    with pytest.raises(SystemExit):
        sweep.main(["--db", temp_db_path, "--loop", "--interval", "0"])


def test_once_and_loop_are_exclusive(temp_db_path):
    with pytest.raises(SystemExit):
        sweep.main(["--db", temp_db_path, "--once", "--loop"])


def test_run_loop_counts_failures(temp_db_path, monkeypatch):
    container = ServiceContainer(ServiceConfig(db_path=temp_db_path, clock=FakeClock()))
    container.initialize()
    monkeypatch.setattr(sweep.time, "sleep", lambda seconds: None)

    assert sweep.run_loop(container, interval=1, max_runs=3) == 0


def test_once_returns_one_on_failure(temp_db_path, monkeypatch, capsys):
    container = ServiceContainer(ServiceConfig(db_path=temp_db_path))
    container.initialize()

    def broken_settle(wager_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(container.wager_service, "settle", broken_settle)
    monkeypatch.setattr(sweep, "build_container", lambda db_path: container)
    monkeypatch.setattr(
        container.wager_repo,
        "get_wagers_by_status",
        lambda status: [{"wager_id": 42}] if status == "RESOLVED" else [],
    )

    assert sweep.main(["--db", temp_db_path]) == 1
    assert "FAILED wager 42: boom" in capsys.readouterr().err
