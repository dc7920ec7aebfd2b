"""
Config document schema — the shape of macsetup.yml.

Mirrors the YAML one-to-one (camelCase section names) and rejects
anything it does not recognize. The loader converts a validated
document into a DesiredState.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from macsetup.core.models.desired import EXPORT_NAME, Identity, SettingSpec


class AppStoreEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: object) -> object:
        # App Store IDs are usually written as bare YAML integers.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class DockReplaceEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    add: str = ""
    replace: str = ""

    @model_validator(mode="after")
    def _both_sides(self) -> DockReplaceEntry:
        missing = [side for side in ("add", "replace") if not getattr(self, side).strip()]
        if missing:
            raise ValueError(f"dockReplace entry is missing '{missing[0]}'")
        return self


class ConfigDocument(BaseModel):
    """Validated macsetup.yml contents."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    formulae: list[str] = Field(default_factory=list)
    casks: list[str] = Field(default_factory=list)
    privileged_casks: list[str] = Field(default_factory=list, alias="privilegedCasks")
    app_store_apps: list[AppStoreEntry] = Field(default_factory=list, alias="appStoreApps")
    editor_extensions: list[str] = Field(default_factory=list, alias="editorExtensions")
    settings: list[SettingSpec] = Field(default_factory=list)
    dock_add: list[str] = Field(default_factory=list, alias="dockAdd")
    dock_remove: list[str] = Field(default_factory=list, alias="dockRemove")
    dock_replace: list[DockReplaceEntry] = Field(default_factory=list, alias="dockReplace")
    identity: Identity | None = None

    shell_profile: str = Field(default="~/.zshrc", alias="shellProfile")
    shell_exports: dict[str, str] = Field(default_factory=dict, alias="shellExports")
    oh_my_zsh: bool = Field(default=False, alias="ohMyZsh")
    install_homebrew: bool = Field(default=False, alias="installHomebrew")

    @field_validator(
        "formulae", "casks", "privileged_casks", "app_store_apps",
        "editor_extensions", "settings", "dock_add", "dock_remove", "dock_replace",
        mode="before",
    )
    @classmethod
    def _none_is_empty(cls, value: object) -> object:
        # A section header with nothing under it parses as None.
        return [] if value is None else value

    @field_validator(
        "formulae", "casks", "privileged_casks", "editor_extensions",
        "dock_add", "dock_remove",
    )
    @classmethod
    def _unique_names(cls, values: list[str]) -> list[str]:
        cleaned = [v.strip() for v in values]
        if any(not v for v in cleaned):
            raise ValueError("entries must not be empty")
        dupes = sorted({v for v in cleaned if cleaned.count(v) > 1})
        if dupes:
            raise ValueError(f"duplicate entries: {', '.join(dupes)}")
        return cleaned

    @field_validator("app_store_apps")
    @classmethod
    def _unique_app_ids(cls, values: list[AppStoreEntry]) -> list[AppStoreEntry]:
        ids = [v.id for v in values]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"duplicate App Store IDs: {', '.join(dupes)}")
        return values

    @field_validator("settings")
    @classmethod
    def _unique_setting_keys(cls, values: list[SettingSpec]) -> list[SettingSpec]:
        seen: set[tuple[str, str]] = set()
        for spec in values:
            if spec.setting_key in seen:
                raise ValueError(f"duplicate setting: {spec.label}")
            seen.add(spec.setting_key)
        return values

    @field_validator("shell_exports", mode="before")
    @classmethod
    def _exports_as_str(cls, value: object) -> object:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {k: v if isinstance(v, str) else str(v) for k, v in value.items()}
        return value

    @field_validator("shell_exports")
    @classmethod
    def _valid_export_names(cls, values: dict[str, str]) -> dict[str, str]:
        bad = [name for name in values if not EXPORT_NAME.fullmatch(name)]
        if bad:
            raise ValueError(f"invalid variable names: {', '.join(repr(b) for b in bad)}")
        return values
