"""Tests for the debug utility module.

debug() is toggled by the AIBRIDGE_DEBUG environment variable, which is read
when the module is imported.
"""

import importlib
from collections.abc import Callable, Iterator
from io import StringIO
from types import ModuleType
from unittest.mock import patch

import pytest

from aibridge_serve.utils import debug as debug_module

Reloader = Callable[[str | None], ModuleType]


@pytest.fixture
def reload_debug(monkeypatch: pytest.MonkeyPatch) -> Iterator[Reloader]:
    """Reload the debug module under a given AIBRIDGE_DEBUG value."""

    def _reload(value: str | None) -> ModuleType:
        if value is None:
            monkeypatch.delenv("AIBRIDGE_DEBUG", raising=False)
        else:
            monkeypatch.setenv("AIBRIDGE_DEBUG", value)
        return importlib.reload(debug_module)

    yield _reload

    monkeypatch.delenv("AIBRIDGE_DEBUG", raising=False)
    importlib.reload(debug_module)


def _capture(module: ModuleType, *messages: str) -> str:
    with patch("sys.stdout", new=StringIO()) as fake_stdout:
        for message in messages:
            module.debug(message)
        return fake_stdout.getvalue()


def test_debug_disabled_by_default(reload_debug: Reloader) -> None:
    module = reload_debug(None)

    assert _capture(module, "This should not print") == ""
    assert module.is_debug_enabled() is False


@pytest.mark.parametrize("value", ["1", "true", "True", "TRUE", "yes", "YES"])
def test_debug_enabled_for_truthy_values(
    reload_debug: Reloader, value: str
) -> None:
    module = reload_debug(value)

    output = _capture(module, f"Testing {value}")

    assert f"[DEBUG] Testing {value}" in output
    assert module.is_debug_enabled() is True


@pytest.mark.parametrize("value", ["0", "false", "no", "off", ""])
def test_debug_disabled_for_falsy_values(
    reload_debug: Reloader, value: str
) -> None:
    module = reload_debug(value)

    assert _capture(module, f"Testing {value}") == ""


def test_debug_multiple_messages(reload_debug: Reloader) -> None:
    module = reload_debug("1")

    output = _capture(module, "First", "Second", "Third")

    assert output.count("[DEBUG]") == 3
    assert output.index("First") < output.index("Second") < output.index("Third")


def test_debug_with_empty_message(reload_debug: Reloader) -> None:
    module = reload_debug("1")

    assert "[DEBUG]" in _capture(module, "")
