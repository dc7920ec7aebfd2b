"""
Domain models — Pydantic types for the provisioning run.

All models are re-exported here for convenient access:

    from macsetup.core.models import DesiredState, Capabilities, PlanAction, Receipt
"""

from macsetup.core.models.capabilities import Capabilities
from macsetup.core.models.desired import (
    ActionKind,
    DesiredState,
    DockAction,
    Identity,
    PackageSpec,
    SettingSpec,
    ShellExport,
)
from macsetup.core.models.plan import ActionOutcome, PlanAction
from macsetup.core.models.receipt import Receipt

__all__ = [
    # desired.py
    "ActionKind",
    # plan.py
    "ActionOutcome",
    # capabilities.py
    "Capabilities",
    "DesiredState",
    "DockAction",
    "Identity",
    "PackageSpec",
    "PlanAction",
    # receipt.py
    "Receipt",
    "SettingSpec",
    "ShellExport",
]
