"""Tests for relbot.output.console module."""

from __future__ import annotations

import pytest

from relbot.output.console import (
    ConsoleProtocol,
    MockConsole,
    OutputRecord,
    RichConsole,
    Style,
)


class TestStyle:
    """Test Style enum."""

    def test_str_conversion(self) -> None:
        assert str(Style.SUCCESS) == "success"
        assert str(Style.ERROR) == "error"
        assert str(Style.DIM) == "dim"

    def test_all_styles_exist(self) -> None:
        expected = {"DEFAULT", "SUCCESS", "ERROR", "WARNING", "INFO", "DIM", "HEADER"}
        assert {s.name for s in Style} == expected


class TestMockConsole:
    """Test MockConsole for testing purposes."""

    def test_print_captures_message(self) -> None:
        console = MockConsole()
        console.print("hello")
        assert console.outputs == [OutputRecord("hello", Style.DEFAULT)]

    def test_helpers_prefix_and_style(self) -> None:
        console = MockConsole()
        console.success("tagged")
        console.error("push failed")
        console.warning("cache not written")
        console.info("note")
        console.header("Release v1.0.0")

        assert console.messages == [
            "✓ tagged",
            "error: push failed",
            "warning: cache not written",
            "info: note",
            "Release v1.0.0",
        ]
        assert [o.style for o in console.outputs] == [
            Style.SUCCESS,
            Style.ERROR,
            Style.WARNING,
            Style.INFO,
            Style.HEADER,
        ]

    def test_has_error_and_find(self) -> None:
        console = MockConsole()
        console.print("one")
        assert not console.has_error()
        console.error("two")
        assert console.has_error()
        assert [o.message for o in console.find("two")] == ["error: two"]
        assert console.text == "one\nerror: two"

    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = MockConsole()
        console.print("ok")


class TestRichConsole:
    def test_writes_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        console = RichConsole()
        console.print("plain [not markup]")
        console.success("done")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "plain [not markup]" in captured.err
        assert "done" in captured.err
