"""Settings loading and validation for the optional YAML config file."""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from sppctl.core.errors import ConfigError
from sppctl.core.model import ChannelInfo, Settings

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("sppctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def config_path() -> Path:
    explicit = os.environ.get("SPPCTL_CONFIG")
    if explicit:
        return Path(explicit)
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "sppctl/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    # An empty file means "all defaults".
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigError(f"{context} must be boolean true/false")


def _build_settings(doc: dict[str, Any], source: Path) -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    defaults = Settings()
    ble = doc.get("ble", {})
    rfcomm = doc.get("rfcomm", {})

    channels = defaults.rfcomm_channels
    if "channels" in rfcomm:
        channels = tuple(
            ChannelInfo(channel=str(entry["channel"]), name=entry.get("name", "SPP"))
            for entry in rfcomm["channels"]
        )

    return Settings(
        backend=doc.get("backend", defaults.backend),
        scan_window_s=float(doc.get("scan_window_s", defaults.scan_window_s)),
        poll_interval_s=float(doc.get("poll_interval_s", defaults.poll_interval_s)),
        ble_match_rule=ble.get("match_rule", defaults.ble_match_rule),
        ble_write_with_response=_normalize_bool(
            ble.get("write_with_response", defaults.ble_write_with_response),
            context="ble.write_with_response",
        ),
        ble_connect_timeout_s=float(ble.get("connect_timeout_s", defaults.ble_connect_timeout_s)),
        rfcomm_channels=channels,
        rfcomm_timeout_s=float(rfcomm.get("timeout_s", defaults.rfcomm_timeout_s)),
    )


def load_settings(path: Path | None = None) -> Settings:
    source = path or config_path()
    if not source.exists():
        if path is not None:
            raise ConfigError(f"Config file {source} does not exist")
        LOGGER.debug("No config file at %s, using defaults", source)
        return Settings()

    settings = _build_settings(_read_yaml(source), source)
    LOGGER.debug("Loaded settings from %s: %s", source, settings)
    return settings
