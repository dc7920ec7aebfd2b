"""
Config check use case — validate macsetup.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from macsetup.core.config.loader import ConfigError, find_config_file, load_desired_state
from macsetup.core.models.desired import ActionKind, DesiredState


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    desired: DesiredState | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        desired = self.desired
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "packages": len(desired.packages) if desired else 0,
            "settings": len(desired.settings) if desired else 0,
            "dock_actions": len(desired.dock) if desired else 0,
            "requests": desired.request_count if desired else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate the machine configuration and report issues.

    Args:
        config_path: Optional explicit path to macsetup.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        result.errors.append("No macsetup.yml found.")
        return result
    result.config_path = config_path

    try:
        desired = load_desired_state(config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result
    result.desired = desired

    # Semantic checks
    if desired.request_count == 0:
        result.warnings.append("Nothing requested. The run will do nothing.")

    for action in desired.dock:
        if action.path and not action.path.rstrip("/").endswith(".app"):
            result.warnings.append(f"Dock path does not look like an app bundle: {action.path}")

    privileged = desired.packages_of(ActionKind.PRIVILEGED_CASK)
    if privileged or desired.settings or desired.dock:
        result.warnings.append(
            "Privileged actions present (privileged casks, settings, dock). "
            "The run will ask for your password once."
        )

    result.valid = not result.errors
    return result
