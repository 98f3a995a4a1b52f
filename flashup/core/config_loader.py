"""Loading and validation of the defaults document and the device profile table."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators
from referencing import Registry, Resource

from flashup.core.errors import ConfigLoadError, ConfigValidationError
from flashup.core.model import DeviceProfile

LOGGER = logging.getLogger(__name__)

DEFAULTS_NAME = "defaults"
PROFILES_NAME = "profiles"
CONFIG_EXTENSION = ".yaml"
ENV_CONFIG_DIR = "FLASHUP_CONFIG_DIR"
SYSTEM_CONFIG_DIR = Path("/etc/flashup")


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

# Only literal true/false are booleans; "no" and "off" stay strings.
for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]
UniqueKeyLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedConfig:
    defaults: dict[str, Any]
    profiles: tuple[DeviceProfile, ...]
    sources: tuple[str, ...]
    warnings: tuple[str, ...]


def _read_schema(name: str) -> dict[str, Any]:
    text = resources.files("flashup.schemas").joinpath(name).read_text(encoding="utf-8")
    return json.loads(text)


def _load_schema_validator(name: str) -> Any:
    settings_schema = _read_schema("settings.schema.json")
    registry = Registry().with_resource(
        settings_schema["$id"], Resource.from_contents(settings_schema)
    )
    schema = settings_schema if name == "settings.schema.json" else _read_schema(name)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema, registry=registry)


def config_dirs() -> list[Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    dirs = [xdg_config / "flashup", SYSTEM_CONFIG_DIR]
    env_dir = os.environ.get(ENV_CONFIG_DIR)
    if env_dir:
        dirs.append(Path(env_dir))
    return dirs


def find_document(name: str) -> Path | None:
    """Return the first readable candidate, trying the bare name before the extension."""
    for directory in config_dirs():
        for candidate in (directory / name, directory / f"{name}{CONFIG_EXTENSION}"):
            if candidate.is_file() and os.access(candidate, os.R_OK):
                return candidate
    return None


def _read_yaml(path: Path | Traversable) -> Any:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read configuration file {path}: {exc}") from exc

    try:
        return yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc


def _validate(doc: Any, schema_name: str, source: Path | Traversable) -> None:
    validator = _load_schema_validator(schema_name)
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def parse_defaults(doc: Any, source: Path | Traversable) -> dict[str, Any]:
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigValidationError(f"Defaults file {source} must contain a mapping at root")
    _validate(doc, "settings.schema.json", source)
    return dict(doc)


def parse_profiles(doc: Any, source: Path | Traversable) -> tuple[DeviceProfile, ...]:
    if not isinstance(doc, dict):
        raise ConfigValidationError(f"Profile file {source} must contain a mapping at root")
    _validate(doc, "profiles.schema.json", source)

    profiles: list[DeviceProfile] = []
    seen: set[str] = set()
    for entry in doc["profiles"]:
        if entry["id"] in seen:
            raise ConfigValidationError(f"Duplicate profile id '{entry['id']}' in {source}")
        seen.add(entry["id"])
        try:
            family = re.compile(entry["family"])
        except re.error as exc:
            raise ConfigValidationError(
                f"Profile '{entry['id']}' in {source} has an invalid family pattern: {exc}"
            ) from exc
        profiles.append(
            DeviceProfile(
                id=entry["id"],
                family=family,
                processor=entry.get("processor"),
                overrides=dict(entry["settings"]),
            )
        )
    return tuple(profiles)


def _packaged_profiles() -> Traversable:
    return resources.files("flashup.profiles").joinpath(f"{PROFILES_NAME}{CONFIG_EXTENSION}")


def load_config() -> LoadedConfig:
    sources: list[str] = []
    warnings: list[str] = []

    defaults: dict[str, Any] = {}
    defaults_path = find_document(DEFAULTS_NAME)
    if defaults_path is not None:
        defaults = parse_defaults(_read_yaml(defaults_path), defaults_path)
        sources.append(str(defaults_path))

    profiles_path = find_document(PROFILES_NAME)
    if profiles_path is not None:
        profiles = parse_profiles(_read_yaml(profiles_path), profiles_path)
        sources.append(str(profiles_path))
        warning = f"Profile table {profiles_path} replaces the packaged profiles"
        LOGGER.info(warning)
        warnings.append(warning)
    else:
        packaged = _packaged_profiles()
        profiles = parse_profiles(_read_yaml(packaged), packaged)

    return LoadedConfig(
        defaults=defaults,
        profiles=profiles,
        sources=tuple(sources),
        warnings=tuple(warnings),
    )
