"""Gateway: YAML configuration loader -- implements ConfigLoader port."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import yaml

from emerald_transcribe.l1_entities.config import AppConfig
from emerald_transcribe.l3_interface_adapters.gateways.paths import DEFAULT_CONFIG_PATHS

log = logging.getLogger('emerald.config')


class YamlConfigLoader:
    """Reads one YAML config file (explicit or first found on the search path) and applies overrides.

    Missing default files are not an error; an explicit path that does not exist is.
    Malformed YAML or a non-mapping document raises ValueError naming the file.
    """

    def __init__(self, search_paths: Sequence[Path] | None = None) -> None:
        self._search_paths = list(search_paths) if search_paths is not None else DEFAULT_CONFIG_PATHS
        self.source: Path | None = None

    def load(
        self,
        config_path: str | None = None,
        overrides: dict | None = None,
    ) -> AppConfig:
        return AppConfig.model_validate(self.load_raw(config_path, overrides))

    def load_raw(
        self,
        config_path: str | None = None,
        overrides: dict | None = None,
    ) -> dict:
        """Merged data before validation; infra keys (huggingface, worker) are kept."""
        self.source = self._resolve(config_path)
        data = _read_mapping(self.source) if self.source is not None else {}
        if self.source is None:
            log.debug('No config file found, using built-in defaults')
        if overrides:
            deep_merge(data, overrides)
        return data

    def _resolve(self, config_path: str | None) -> Path | None:
        if config_path is not None:
            path = Path(config_path)
            if not path.exists():
                raise FileNotFoundError(f'Config file not found: {path}')
            return path
        return next((p for p in self._search_paths if p.exists()), None)


def _read_mapping(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as exc:
        raise ValueError(f'Malformed YAML in {path}: {exc}') from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f'Config file {path} must contain a mapping, got {type(data).__name__}')
    log.info('Loaded config from %s', path)
    return data


def deep_merge(base: dict, override: dict) -> dict:
    """Merge *override* into *base* in place; nested mappings merge, anything else replaces."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            deep_merge(current, value)
        else:
            base[key] = value
    return base
