"""
Registry Settings

Matching thresholds and intake defaults, read from the YAML / JSON files
in backend/config on top of built-in defaults. Values are addressed with
dotted keys such as 'matching.similarNameThreshold'.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger


# Built-in defaults, overridden by files in the config directory
DEFAULT_CONFIG: Dict[str, Any] = {
    'matching': {
        'candidateLimit': 50,
        'directSearchLimit': 50,
        'similarNameThreshold': 0.8,
        'lastNameWeight': 0.6,
    },
    'intake': {
        'defaultMunicipality': 'Baggao',
        'defaultProvince': 'Cagayan',
    },
}

CONFIG_DIR = Path(__file__).parent.parent / "config"


class ConfigManager:
    """
    Registry settings loaded from backend/config

    Every *.yaml file is read, then every *.json file, each in name
    order. A section that appears in several files is merged key by key
    and the later file wins. Keys no file sets keep their built-in default.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Args:
            config_dir: Settings directory (default: backend/config)
        """
        self.config_dir = Path(config_dir) if config_dir else CONFIG_DIR
        self.configs: Dict[str, Any] = {}
        self._load()

    def _load(self):
        self.configs = copy.deepcopy(DEFAULT_CONFIG)

        if not self.config_dir.exists():
            logger.warning(f"[CONFIG] {self.config_dir} not found, using built-in defaults")
            return

        files = sorted(self.config_dir.glob("*.yaml")) + sorted(self.config_dir.glob("*.json"))
        for path in files:
            try:
                with open(path, 'r') as f:
                    data = json.load(f) if path.suffix == '.json' else (yaml.safe_load(f) or {})
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning(f"[CONFIG] Skipping {path.name}: {e}")
                continue

            for section, values in data.items():
                if isinstance(values, dict) and isinstance(self.configs.get(section), dict):
                    self.configs[section].update(values)
                else:
                    self.configs[section] = values
            logger.debug(f"[CONFIG] Loaded: {path.name}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key

        >>> get_config().get('intake.defaultProvince')
        'Cagayan'
        """
        node = self.configs
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def get_matching_config(self) -> Dict[str, Any]:
        """Duplicate matching section"""
        return self.configs.get('matching', {})

    def get_intake_config(self) -> Dict[str, Any]:
        """Citation intake section"""
        return self.configs.get('intake', {})

    def reload(self):
        """Re-read the settings directory, dropping runtime overrides"""
        logger.info("[CONFIG] Reloading settings...")
        self._load()
        logger.info("[OK] Settings reloaded")

    def set(self, key: str, value: Any):
        """Override a dotted key until the next reload"""
        *parents, leaf = key.split('.')
        node = self.configs
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value


_config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Shared settings instance (loaded on first use)"""
    global _config
    if _config is None:
        _config = ConfigManager()
    return _config
