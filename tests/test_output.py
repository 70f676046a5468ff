"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline and quiet mode
- Response state rendering in JSON and plain modes
- Global instance management
"""

from __future__ import annotations

import json

import pytest

from wiretap.models import RequestDescriptor, ResponseData, ResponseState
from wiretap.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("wiretap.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("wiretap.output._is_tty", lambda: True)


def _done() -> ResponseState:
    return ResponseState(
        data=ResponseData(
            status=404,
            status_text="Not Found",
            headers={"Content-Type": "text/plain", "Vary": ["Accept", "Origin"]},
            body="missing",
            duration=17,
        ),
        request=RequestDescriptor(url="https://x/y", timestamp=5),
    )


# ------------------------------------------------------------------ #
# Format resolution and colour
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert OutputManager().format == OutputFormat.RICH

    def test_auto_plain_when_no_color(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# Streams
# ------------------------------------------------------------------ #


class TestStdoutStderrDiscipline:
    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("hello")
        captured = capfd.readouterr()
        assert "hello" in captured.out
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("diagnostic text")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "diagnostic text" in captured.err

    def test_debug_only_when_verbose(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("hidden")
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("shown")
        captured = capfd.readouterr()
        assert "hidden" not in captured.err
        assert "[debug] shown" in captured.err

    def test_quiet_suppresses_info_not_errors(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        assert mgr.is_quiet is True
        assert mgr.is_verbose is False
        mgr.info("chatter")
        mgr.success("yay")
        mgr.warning("careful")
        mgr.error("broken")
        err = capfd.readouterr().err
        assert "chatter" not in err
        assert "yay" not in err
        assert "Warning: careful" in err
        assert "Error: broken" in err


# ------------------------------------------------------------------ #
# Data rendering
# ------------------------------------------------------------------ #


class TestFormatResponse:
    def test_json_dict(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON, no_color=True).format_response({"a": 1})
        assert json.loads(capfd.readouterr().out) == {"a": 1}

    def test_plain_dict_is_tab_separated(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).format_response({"a": 1, "b": "x"})
        assert capfd.readouterr().out.splitlines() == ["a\t1", "b\tx"]

    def test_table_plain(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(["k", "v"], [["1", "2"]])
        assert capfd.readouterr().out.splitlines() == ["k\tv", "1\t2"]

    def test_table_json(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(["k", "v"], [["1", "2"]])
        assert json.loads(capfd.readouterr().out) == [{"k": "1", "v": "2"}]


class TestPrintState:
    def test_json_includes_hash_and_aliases(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON, no_color=True).print_state("abc", _done())
        payload = json.loads(capfd.readouterr().out)
        assert payload["hash"] == "abc"
        assert payload["data"]["statusText"] == "Not Found"
        assert payload["request"]["url"] == "https://x/y"

    def test_plain_completed(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_state("abc", _done())
        lines = capfd.readouterr().out.splitlines()
        assert lines[0] == "abc\t404 Not Found\t17ms"
        assert "Content-Type: text/plain" in lines
        assert "Vary: Accept, Origin" in lines
        assert lines[-1] == "missing"

    def test_plain_loading(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_state("abc", ResponseState(loading=True))
        assert capfd.readouterr().out.strip() == "abc\tloading"

    def test_plain_error(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_state("abc", ResponseState(error="timeout"))
        assert capfd.readouterr().out.strip() == "abc\terror\ttimeout"

    def test_rich_does_not_crash(self, capfd, non_tty):
        OutputManager(format=OutputFormat.RICH, no_color=True).print_state("abc", _done())
        out = capfd.readouterr().out
        assert "404 Not Found" in out
        assert "missing" in out


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_lazy_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_and_reset(self):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        assert get_output() is mgr
        reset_output()
        assert get_output() is not mgr
