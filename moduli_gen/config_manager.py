"""
Configuration Manager Utility

Reads moduli.yaml and layers an optional moduli.local.yaml from the same
directory on top of it, so machine-specific settings stay out of the
shared file.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Load a base YAML config plus its local override.

    Usage:
        raw = ConfigManager().load_config("moduli.yaml")
    """

    def load_config(self, config_path: str) -> Dict[str, Any]:
        """
        Load `config_path` and deep merge its `.local.yaml` sibling over it.

        A broken local override is logged and ignored; the base file is
        required.

        Raises:
            FileNotFoundError: If the base file doesn't exist
            yaml.YAMLError: If the base file isn't valid YAML
            ValueError: If the base file isn't a mapping of sections
        """
        base_path = Path(config_path)
        if not base_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config = self._read_yaml(base_path) or {}
        logger.debug(f"Loaded base configuration from: {base_path}")

        local_path = self.local_override_path(base_path)
        if not local_path.exists():
            return config

        try:
            overrides = self._read_yaml(local_path)
        except (yaml.YAMLError, ValueError, OSError) as e:
            logger.error(f"Ignoring local configuration {local_path}: {e}")
            return config

        if not overrides:
            return config

        logger.info(f"Applying local configuration overrides from: {local_path}")
        return self.deep_merge(config, overrides)

    @staticmethod
    def local_override_path(base_path: Path) -> Path:
        """moduli.yaml -> moduli.local.yaml in the same directory."""
        return base_path.with_name(f"{base_path.stem}.local.yaml")

    def deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge `override` into a copy of `base`, recursing into sections
        present in both. Neither input is modified.
        """
        merged = dict(base)
        for key, value in override.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = self.deep_merge(current, value)
            else:
                merged[key] = value
        return merged

    def _read_yaml(self, path: Path) -> Optional[Dict[str, Any]]:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        if data is None:
            logger.warning(f"Configuration file is empty: {path}")
            return None
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping of sections, "
                             f"got {type(data).__name__}")
        return data
