from __future__ import annotations

import logging as std_logging
import logging.config
from pathlib import Path

import yaml

_FALLBACK_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _apply_dict_config(config: dict) -> bool:
    """
    Apply logging configuration using logging.config.dictConfig.
    Returns True on success, False when the schema is rejected.
    """
    try:
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError):
        return False
    return True


def init_logging(config_path: str | Path = "src/config/logging.yaml") -> None:
    """
    Initialize logging from a YAML configuration.

    - If the YAML file exists and is valid, apply it via dictConfig.
    - On any failure (missing file, YAML parse error, invalid schema), fall back to a single
      stream handler at INFO so logs are not lost.

    Args:
        config_path: Path to YAML config file (relative to project root by default).
    """
    # Normalize to Path and resolve relative paths against CWD for runner compatibility
    path = Path(config_path)
    if not path.is_absolute():
        path = (Path.cwd() / path).resolve()
    if not path.exists():
        # Installed layout: config/logging.yaml ships next to config/settings.py
        path = Path(__file__).resolve().parents[1] / "config" / "logging.yaml"

    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError):
            data = None
        if isinstance(data, dict) and _apply_dict_config(data):
            return

    root = std_logging.getLogger()
    root.setLevel(std_logging.INFO)
    # Prevent duplicate handlers by resetting existing handlers
    root.handlers.clear()
    handler = std_logging.StreamHandler()
    handler.setFormatter(std_logging.Formatter(_FALLBACK_FORMAT))
    root.addHandler(handler)
