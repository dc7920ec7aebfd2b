"""
Configuration loader — reads macsetup.yml into the desired state.

This is the primary entry point for loading a machine description.
It reads YAML, validates against the Pydantic schema, and returns a
typed DesiredState. Validation is strict: a malformed entry fails the
whole load instead of being dropped.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from macsetup.core.config.schema import ConfigDocument
from macsetup.core.models.desired import (
    ActionKind,
    DesiredState,
    DockAction,
    PackageSpec,
    ShellExport,
)

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "macsetup.yml"


class ConfigError(Exception):
    """Raised when the machine configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for macsetup.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to macsetup.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_desired_state(path: Path | None = None) -> DesiredState:
    """Load and validate the machine configuration.

    Args:
        path: Explicit path to macsetup.yml. If None, searches upward.

    Returns:
        Validated DesiredState.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(
            f"No {CONFIG_FILE} found. Create one or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading machine config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    return parse_desired_state(raw, source=str(path))


def parse_desired_state(raw: str, source: str = "<string>") -> DesiredState:
    """Parse YAML text into a DesiredState.

    An empty document is a valid, empty desired state.
    """
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {source}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    try:
        document = ConfigDocument.model_validate(data)
        state = to_desired_state(document)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {source}: {_format_errors(e)}") from e

    logger.info(
        "Loaded %d packages, %d settings, %d dock actions from %s",
        len(state.packages), len(state.settings), len(state.dock), source,
    )
    return state


def to_desired_state(document: ConfigDocument) -> DesiredState:
    """Convert a validated config document into a DesiredState."""
    packages: list[PackageSpec] = []

    for entry in document.formulae:
        name, _, version = entry.partition("@")
        packages.append(PackageSpec(name=name, kind=ActionKind.FORMULA, version=version or None))
    for name in document.casks:
        packages.append(PackageSpec(name=name, kind=ActionKind.CASK))
    for name in document.privileged_casks:
        packages.append(PackageSpec(name=name, kind=ActionKind.PRIVILEGED_CASK))
    for app in document.app_store_apps:
        packages.append(PackageSpec(
            name=app.name or app.id,
            kind=ActionKind.APP_STORE,
            app_id=app.id,
        ))
    for name in document.editor_extensions:
        packages.append(PackageSpec(name=name, kind=ActionKind.EDITOR_EXTENSION))

    dock: list[DockAction] = []
    for entry in document.dock_replace:
        dock.append(DockAction(op="replace", path=entry.add, name=entry.replace))
    for path in document.dock_add:
        dock.append(DockAction(op="add", path=path))
    for name in document.dock_remove:
        dock.append(DockAction(op="remove", name=name))

    return DesiredState(
        packages=packages,
        settings=list(document.settings),
        dock=dock,
        identity=document.identity,
        shell_profile=document.shell_profile,
        shell_exports=[
            ShellExport(name=name, value=value)
            for name, value in document.shell_exports.items()
        ],
        oh_my_zsh=document.oh_my_zsh,
        install_homebrew=document.install_homebrew,
    )


def _format_errors(error: ValidationError) -> str:
    """Flatten pydantic errors into ``location: message`` pairs."""
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)
