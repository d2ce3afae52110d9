"""Tests for stderr output.

Covers:
- NO_COLOR / TERM=dumb colour disabling
- stdout stays clean for the credential protocol
- Quiet mode suppression rules
- Verbose mode debug output
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from gitauth.output import OutputManager, _should_disable_color


class TestColorDetection:
    def test_no_color_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_dumb_terminal(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_tty_enables_color(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        with patch("gitauth.output.sys.stderr.isatty", return_value=True):
            assert _should_disable_color() is False


class TestStreams:
    def test_everything_goes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        out = OutputManager(no_color=True, verbose=True)
        out.info("info")
        out.prompt("prompt")
        out.success("done")
        out.warning("careful")
        out.error("broken")
        out.debug("details")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == [
            "info",
            "prompt",
            "done",
            "Warning: careful",
            "Error: broken",
            "[debug] details",
        ]

    def test_quiet_keeps_prompts_and_problems(self, capsys: pytest.CaptureFixture[str]) -> None:
        out = OutputManager(no_color=True, quiet=True)
        out.info("info")
        out.success("done")
        out.prompt("enter code")
        out.warning("careful")
        out.error("broken")

        assert capsys.readouterr().err.splitlines() == [
            "enter code",
            "Warning: careful",
            "Error: broken",
        ]

    def test_debug_hidden_without_verbose(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(no_color=True).debug("details")
        assert capsys.readouterr().err == ""


class TestHighlight:
    def test_plain_without_color(self) -> None:
        assert OutputManager(no_color=True).highlight("ABCD-[1234]") == "ABCD-[1234]"

    def test_markup_is_escaped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("gitauth.output._should_disable_color", lambda: False)
        assert OutputManager().highlight("[red]x") == "[bold]\\[red]x[/bold]"
