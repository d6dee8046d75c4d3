from __future__ import annotations

import contextlib
from dataclasses import asdict, dataclass, field
import json
import logging
import os
from pathlib import Path
from typing import Any

from .compat import RULE_SET_VERSION, CompatibilityRuleSet, default_rule_set, rule_set_from_config
from .grammar import ROOT_TOKEN

CONFIG_DIR = Path.home() / ".treelocator"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
LOGGER = logging.getLogger("treelocator.config")


@dataclass(slots=True)
class LocatorAttributes:
    connector_id: str = "data-locator-id"
    type_name: str = "data-locator-type"
    kind: str = "data-locator-kind"
    debug_id: str = "data-locator-debug-id"
    window_order: str = "data-locator-window"
    sub_part: str = "data-locator-subpart"
    sub_part_provider: str = "data-locator-subpart-provider"
    hidden: str = "data-locator-hidden"


@dataclass(slots=True)
class LocatorConfig:
    root_token: str = ROOT_TOKEN
    window_token: str = "Window"
    context_menu_token: str = "ContextMenu"
    legacy_id_prefix: str = "PID_S"
    compat_version: int = RULE_SET_VERSION
    compat_rules: list[dict[str, Any]] = field(default_factory=lambda: default_rule_set().to_config())
    attributes: LocatorAttributes = field(default_factory=LocatorAttributes)
    log_level: str = "INFO"

    def rule_set(self) -> CompatibilityRuleSet:
        return rule_set_from_config(self.compat_rules, self.compat_version)


def load_locator_config(config_path: Path | None = None) -> LocatorConfig:
    path = config_path or CONFIG_PATH
    if not path.exists() or not path.is_file():
        return LocatorConfig()

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, TypeError):
        return LocatorConfig()

    if not isinstance(payload, dict):
        return LocatorConfig()

    defaults = LocatorConfig()
    config = LocatorConfig(
        root_token=_token(payload.get("root_token"), defaults.root_token),
        window_token=_token(payload.get("window_token"), defaults.window_token),
        context_menu_token=_token(payload.get("context_menu_token"), defaults.context_menu_token),
        legacy_id_prefix=str(payload.get("legacy_id_prefix", defaults.legacy_id_prefix) or ""),
        compat_version=_int(payload.get("compat_version"), defaults.compat_version),
        attributes=_attributes(payload.get("attributes")),
        log_level=str(payload.get("log_level", defaults.log_level) or defaults.log_level).upper(),
    )

    raw_rules = payload.get("compat_rules")
    if isinstance(raw_rules, list) and all(isinstance(item, dict) for item in raw_rules):
        try:
            rule_set_from_config(raw_rules, config.compat_version)
        except ValueError as exc:
            LOGGER.warning("Ignoring compat_rules in %s: %s", path, exc)
        else:
            config.compat_rules = [dict(item) for item in raw_rules]
    return config


def save_locator_config(config: LocatorConfig, config_path: Path | None = None) -> tuple[bool, str | None]:
    """Write ``config`` as JSON, replacing the target file in one step."""

    path = config_path or CONFIG_PATH
    staging = path.with_name(f".{path.name}.tmp")
    text = json.dumps(asdict(config), ensure_ascii=True, indent=2, sort_keys=True) + "\n"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        staging.write_text(text, encoding="utf-8")
        os.replace(staging, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            staging.unlink(missing_ok=True)
        LOGGER.warning("Could not save locator config to %s: %s", path, exc)
        return False, f"Could not write locator config to {path}: {exc}"

    LOGGER.info("Saved locator config to %s.", path)
    return True, None



def build_logger(name: str = "treelocator", level: str = "INFO", log_dir: Path | None = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False
    try:
        target_dir = log_dir or CONFIG_DIR
        target_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(target_dir / "treelocator.log", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
    except OSError:
        # Fall back to stderr when the log folder is not writable.
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(stream_handler)
    return logger


def _token(value: Any, default: str) -> str:
    text = str(value or "").strip()
    if not text or any(char in text for char in "/#[]"):
        return default
    return text


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _attributes(raw: Any) -> LocatorAttributes:
    attributes = LocatorAttributes()
    if not isinstance(raw, dict):
        return attributes
    for key in LocatorAttributes.__dataclass_fields__:
        value = str(raw.get(key) or "").strip()
        if value:
            setattr(attributes, key, value)
    return attributes
