import asyncio
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

import aiofiles

from .logging_utils import get_module_logger


logger = get_module_logger("ConfigManager")


class ConfigManager:
    """Reads ``key = value`` config files and layers them over each other.

    Later files win key by key, which is how a user config overrides the
    shipped defaults without having to repeat them.
    """

    def __init__(self):
        self.logger = get_module_logger("ConfigManager")

    # ------------------------------------------------------------------
    # Internal helpers

    @staticmethod
    def _strip_inline_comment(value: str) -> str:
        # '#' only starts a comment when preceded by whitespace so colour
        # values like "#ff00aa" survive
        for idx, ch in enumerate(value):
            if ch == '#' and idx > 0 and value[idx - 1].isspace():
                return value[:idx].strip()
        return value

    def _parse_config_lines(self, lines: Iterable[str]) -> Dict[str, str]:
        config: Dict[str, str] = {}

        for line_num, raw_line in enumerate(lines, 1):
            line = raw_line.strip()
            if not line or line.startswith('#'):
                continue
            if '=' not in line:
                logger.warning("Invalid config line %d (missing '='): %s", line_num, line)
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = self._strip_inline_comment(value.strip())

            if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
                value = value[1:-1]

            config[key] = value

        return config

    # ------------------------------------------------------------------
    # Reading

    def read_config(self, config_path: Path) -> Dict[str, str]:
        config: Dict[str, str] = {}

        if not config_path.exists():
            logger.debug("Config file not found at %s", config_path)
            return config

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config = self._parse_config_lines(f)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)

        return config

    async def read_config_async(self, config_path: Path) -> Dict[str, str]:
        """Async version for use in async contexts."""
        config: Dict[str, str] = {}

        if not await asyncio.to_thread(config_path.exists):
            logger.debug("Config file not found at %s", config_path)
            return config

        try:
            lines: list[str] = []
            async with aiofiles.open(config_path, 'r', encoding='utf-8') as f:
                async for line in f:
                    lines.append(line)
            config = self._parse_config_lines(lines)
        except OSError as e:
            logger.error("Failed to read config %s: %s", config_path, e)

        return config

    def read_layered(self, paths: Sequence[Optional[Path]]) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for path in paths:
            if path is None:
                continue
            layer = self.read_config(Path(path))
            if layer:
                logger.debug("Loaded %d config keys from %s", len(layer), path)
            merged.update(layer)
        return merged

    async def read_layered_async(self, paths: Sequence[Optional[Path]]) -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for path in paths:
            if path is None:
                continue
            merged.update(await self.read_config_async(Path(path)))
        return merged

    def scoped(self, config: Dict[str, str], prefix: str) -> Dict[str, str]:
        """Return the keys under ``prefix.`` with the prefix removed."""
        marker = f"{prefix}."
        return {key[len(marker):]: value for key, value in config.items() if key.startswith(marker)}


_config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    return _config_manager
