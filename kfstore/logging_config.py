from __future__ import annotations
import logging
from pathlib import Path
import yaml
from typing import Optional

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s]: %(message)s'
PACKAGE_LOGGER = 'kfstore'


def level_from_name(name: Optional[str], default: int = logging.WARNING) -> int:
    """Map a level name such as ``"debug"`` to its numeric value."""
    if isinstance(name, str):
        numeric = getattr(logging, name.upper(), None)
        if isinstance(numeric, int):
            return numeric
    return default


def set_log_level(name: str) -> int:
    """Set the level of the package logger only; root handlers are untouched."""
    lvl = level_from_name(name)
    logging.getLogger(PACKAGE_LOGGER).setLevel(lvl)
    return lvl


def configure_logging(config_path: Optional[Path] = None, level: Optional[str] = None) -> logging.Logger:
    """Configure root logging for an application embedding the store.

    The level comes from `level` when given, otherwise from the `log_level`
    option of the YAML store config at `config_path`, otherwise WARNING.
    Existing root handlers are replaced. Returns the package logger.
    """
    lvl_name = level
    if lvl_name is None and config_path is not None and Path(config_path).exists():
        try:
            with Path(config_path).open('r', encoding='utf-8') as _f:
                _cfg = yaml.safe_load(_f) or {}
            if isinstance(_cfg, dict):
                lvl_name = _cfg.get('log_level')
        except yaml.YAMLError:
            # If config parse fails, fall back to default level
            lvl_name = None

    log_level = level_from_name(lvl_name)

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.NOTSET)
    logger.debug("Log level set to %s", logging.getLevelName(log_level))
    return logger
