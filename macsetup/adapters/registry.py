"""
Provider registry — central dispatch for all provider operations.

The registry maps action kinds to providers. The planner and executor
never talk to providers directly — always through the registry, which
guarantees that a misbehaving provider turns into a failed Receipt
rather than an exception that would abort the run.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime

from macsetup.adapters.base import Provider, ProviderError
from macsetup.core.models.desired import ActionKind
from macsetup.core.models.plan import PlanAction
from macsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Central registry and dispatcher for providers.

    Features:
        - Register providers for the action kinds they declare
        - Query satisfaction and usability without raising
        - Execute actions through the appropriate provider
    """

    def __init__(self) -> None:
        self._providers: dict[ActionKind, Provider] = {}

    def register(self, provider: Provider) -> None:
        """Register a provider for every kind it handles."""
        for kind in provider.kinds:
            if kind in self._providers:
                logger.warning("Overwriting provider for %s: %s", kind, provider.name)
            self._providers[kind] = provider
        logger.debug("Registered provider: %s (%s)", provider.name, ", ".join(provider.kinds))

    def get(self, kind: ActionKind) -> Provider | None:
        """Look up the provider for a kind."""
        return self._providers.get(kind)

    def list_providers(self) -> dict[str, str]:
        """Map of kind → provider name."""
        return {str(kind): p.name for kind, p in self._providers.items()}

    def is_usable(self, kind: ActionKind) -> tuple[bool, str]:
        """Whether the provider for ``kind`` exists and can act now."""
        provider = self._providers.get(kind)
        if provider is None:
            return False, f"no provider registered for '{kind}'"
        try:
            return provider.is_usable()
        except Exception as e:
            logger.warning("Usability check for %s raised: %s", provider.name, e)
            return False, str(e)

    def is_satisfied(self, action: PlanAction) -> bool:
        """Ask the provider whether the action is already done.

        A failing check counts as "not satisfied" so the action is
        attempted and its real error surfaces in the report.
        """
        provider = self._providers.get(action.kind)
        if provider is None:
            return False
        try:
            return provider.is_satisfied(action)
        except Exception as e:
            logger.warning("Satisfaction check for %s raised: %s", action.id, e)
            return False

    def execute(self, action: PlanAction) -> Receipt:
        """Execute an action through its provider. Never raises."""
        started_at = datetime.now(UTC).isoformat()
        start_time = time.monotonic()

        provider = self._providers.get(action.kind)
        if provider is None:
            return Receipt.failure(
                provider="none",
                action_id=action.id,
                error=f"No provider registered for '{action.kind}'",
            )

        try:
            receipt = provider.apply(action)
        except ProviderError as e:
            receipt = Receipt.failure(provider=provider.name, action_id=action.id, error=str(e))
        except Exception as e:
            # Providers should never raise here
            logger.error("Provider %s raised during %s: %s", provider.name, action.id, e)
            receipt = Receipt.failure(
                provider=provider.name,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        receipt.action_id = action.id
        receipt.started_at = started_at
        receipt.ended_at = datetime.now(UTC).isoformat()
        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt

    def restart_ui(self, kind: ActionKind) -> Receipt | None:
        """Restart the UI processes owned by the provider for ``kind``."""
        provider = self._providers.get(kind)
        if provider is None or not provider.restart_processes:
            return None
        try:
            return provider.restart_ui()
        except Exception as e:
            return Receipt.failure(provider=provider.name, action_id="restart-ui", error=str(e))
