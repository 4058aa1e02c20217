"""Durable record of the active slot.

The state file holds a single token, ``blue`` or ``green``. It is the source
of truth for which slot is live; when it is missing or corrupt the live slot
is inferred from the router's generated configuration and written back.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

from hotfix.core.config import SlotsConfig
from hotfix.platform.files import atomic_write_text, read_token
from hotfix.release.model import DeploymentState, Slot

__all__ = ["ColorStateStore"]


class ColorStateStore:
    """Read/write access to the active-slot record.

    Args:
        state_path: The single-token state file.
        router_config_path: Generated router config used for inference.
        slots: Naming used to recognize slot upstreams in the router config.
        default: Slot assumed when neither source is conclusive.
    """

    def __init__(
        self,
        state_path: Path,
        router_config_path: Path,
        slots: SlotsConfig,
        default: Slot = Slot.BLUE,
    ) -> None:
        self.state_path = state_path
        self.router_config_path = router_config_path
        self._default = default
        self._upstream_re = re.compile(
            rf"\b{re.escape(slots.service_prefix)}-(blue|green):{slots.port}\b"
        )

    def get_active(self) -> Slot:
        """Return the active slot. Never fails.

        Order: state file, router config, default. An inferred value is
        persisted so later reads are authoritative.
        """
        slot = Slot.parse(read_token(self.state_path))
        if slot is not None:
            return slot

        slot = self.router_slot() or self._default
        try:
            atomic_write_text(self.state_path, f"{slot.value}\n")
        except OSError:
            # Unwritable state dir: still answer, the next release will write it.
            pass
        return slot

    def set_active(self, slot: Slot) -> None:
        """Persist ``slot`` as active. Call only after the router reload committed."""
        atomic_write_text(self.state_path, f"{slot.value}\n")

    def read_state(self) -> DeploymentState | None:
        """Persisted state with the file's mtime, or None if absent/corrupt."""
        slot = Slot.parse(read_token(self.state_path))
        if slot is None:
            return None
        try:
            mtime = self.state_path.stat().st_mtime
        except OSError:
            return None
        return DeploymentState(active=slot, updated_at=datetime.fromtimestamp(mtime))

    def router_slot(self) -> Slot | None:
        """Slot named as upstream in the router's live config, if recognizable."""
        try:
            text = self.router_config_path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            return None
        match = self._upstream_re.search(text)
        if match is None:
            return None
        return Slot.parse(match.group(1))
