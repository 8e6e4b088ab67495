"""Unit tests for the key = value config reader."""

import pytest

from ecp_visual.core.config_manager import ConfigManager


@pytest.fixture
def manager():
    return ConfigManager()


def test_parses_comments_quotes_and_blank_lines(tmp_path, manager):
    path = tmp_path / "config.txt"
    path.write_text(
        "# heading\n"
        "\n"
        "device.host = 10.0.0.1   # living room\n"
        "label = \"quoted value\"\n"
        "colour = #ff00aa\n"
        "no equals sign here\n",
        encoding="utf-8",
    )
    config = manager.read_config(path)
    assert config == {
        "device.host": "10.0.0.1",
        "label": "quoted value",
        "colour": "#ff00aa",
    }


def test_missing_file_is_empty(tmp_path, manager):
    assert manager.read_config(tmp_path / "absent.txt") == {}


def test_layering_later_wins(tmp_path, manager):
    base = tmp_path / "base.txt"
    user = tmp_path / "user.txt"
    base.write_text("a = 1\nb = 2\n", encoding="utf-8")
    user.write_text("b = 3\n", encoding="utf-8")
    assert manager.read_layered([base, None, user]) == {"a": "1", "b": "3"}


@pytest.mark.asyncio
async def test_async_reader_matches_sync(tmp_path, manager):
    path = tmp_path / "config.txt"
    path.write_text("x = 1\ny = two # comment\n", encoding="utf-8")
    assert await manager.read_config_async(path) == manager.read_config(path)
    assert await manager.read_layered_async([path]) == {"x": "1", "y": "two"}


def test_scoped_strips_prefix(manager):
    config = {"button.Up": "speed 1", "buttons.debounce_ms": "50", "device.host": "h"}
    assert manager.scoped(config, "button") == {"Up": "speed 1"}
    assert manager.scoped(config, "buttons") == {"debounce_ms": "50"}

