from __future__ import annotations

import sys

import pytest

from timeflow import cli
from timeflow.auth_service import authenticate, create_account
from timeflow.tools import reset_account


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["timeflow", *argv])
    cli.main()


class TestResetAccount:
    def test_deletes_the_account(self, monkeypatch, capsys):
        create_account("tester", "secret")
        monkeypatch.setattr(sys, "argv", ["reset_account", " Tester "])

        reset_account.main()

        assert "OK: account 'tester' deleted" in capsys.readouterr().out
        assert authenticate("tester", "secret") is None

    def test_usage(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", ["reset_account"])
        with pytest.raises(SystemExit) as exc:
            reset_account.main()
        assert exc.value.code == 2
        assert "Usage" in capsys.readouterr().out


class TestCli:
    def test_book_with_pomodoro(self, monkeypatch, capsys):
        run_cli(monkeypatch, "book", "--title", "Review", "--date", "2026-10-19", "--start", "09:00", "--pomodoro")
        out = capsys.readouterr().out
        assert "2026-10-19 09:00-10:00 | Review" in out
        assert "| 10:00-10:05" in out

    def test_weekend_needs_the_flag(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc:
            run_cli(monkeypatch, "book", "--title", "Review", "--date", "2026-10-17", "--start", "09:00")
        assert exc.value.code == 1
        assert "Saturday" in capsys.readouterr().err

        run_cli(monkeypatch, "book", "--title", "Review", "--date", "2026-10-17", "--start", "09:00", "--weekend")
        assert "Scheduled:" in capsys.readouterr().out

    def test_book_recurring(self, monkeypatch, capsys):
        run_cli(
            monkeypatch,
            "book-recurring", "--title", "Standup", "--date", "2026-10-19", "--start", "09:00",
            "--duration", "15", "--pattern", "daily", "--count", "3",
        )
        assert "3 occurrence(s)" in capsys.readouterr().out

    def test_reports_and_lists(self, monkeypatch, capsys):
        run_cli(monkeypatch, "init")
        run_cli(monkeypatch, "list", "phases")
        out = capsys.readouterr().out
        assert "1. Planning" in out

        run_cli(monkeypatch, "book", "--title", "Review", "--date", "2026-10-19", "--start", "09:00")
        run_cli(monkeypatch, "daily", "--date", "2026-10-19")
        out = capsys.readouterr().out
        assert "DAILY SCHEDULE - Monday 19/10/2026" in out
        assert "09:00-10:00  Review (scheduled)" in out

        run_cli(monkeypatch, "slots", "--date", "2026-10-19")
        assert "Next available: 08:00" in capsys.readouterr().out

        run_cli(monkeypatch, "cancel", "--appointment-id", "1")
        assert "Deleted." in capsys.readouterr().out
