"""Router configuration switch (nginx).

Switching traffic is three steps: render the config for the target slot,
check it offline with ``nginx -t``, then hot-reload. ``commit`` only accepts
the token produced by the immediately preceding successful ``validate``, so a
config that failed (or skipped) the check can never be reloaded. Existing
connections to the previous slot drain on their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from hotfix.core.config import SlotsConfig
from hotfix.core.result import Err, Ok, Result
from hotfix.output.console import ConsoleProtocol, Style
from hotfix.release.model import Slot, SlotNames
from hotfix.runtime.compose import ContainerRuntime

__all__ = ["RouterConfig", "RouterError", "TrafficSwitch", "ValidatedConfig"]

_PLACEHOLDERS_SERVICE = ("${FRONTEND_SERVICE}", "{{ upstream }}")
_PLACEHOLDERS_PORT = ("${FRONTEND_PORT}", "{{ port }}")


@dataclass(frozen=True, slots=True)
class RouterConfig:
    """Rendered router configuration pointing at ``slot``."""

    slot: Slot
    upstream: str
    text: str


@dataclass(frozen=True, slots=True)
class RouterError:
    kind: str  # "template" | "invalid" | "reload"
    message: str


class ValidatedConfig:
    """Proof that ``config`` passed the router's offline check.

    Holds the previous file content so a failed reload can be undone.
    """

    __slots__ = ("config", "previous")

    def __init__(self, config: RouterConfig, previous: str | None) -> None:
        self.config = config
        self.previous = previous


class TrafficSwitch:
    def __init__(
        self,
        *,
        runtime: ContainerRuntime,
        template_path: Path,
        generated_path: Path,
        slots: SlotsConfig,
        console: ConsoleProtocol,
    ) -> None:
        self._runtime = runtime
        self._template_path = template_path
        self._generated_path = generated_path
        self._slots = slots
        self._console = console
        self._pending: ValidatedConfig | None = None

    def prepare(self, slot: Slot) -> Result[RouterConfig, RouterError]:
        """Render the router template with ``slot`` as upstream."""
        try:
            template = self._template_path.read_text(encoding="utf-8")
        except OSError as e:
            return Err(
                RouterError(kind="template", message=f"cannot read router template: {e}")
            )

        if not any(p in template for p in _PLACEHOLDERS_SERVICE):
            return Err(
                RouterError(
                    kind="template",
                    message=(
                        f"router template {self._template_path} has no upstream placeholder "
                        "(${FRONTEND_SERVICE} or {{ upstream }})"
                    ),
                )
            )

        upstream = SlotNames.for_slot(slot, self._slots).service
        text = template
        for placeholder in _PLACEHOLDERS_SERVICE:
            text = text.replace(placeholder, upstream)
        for placeholder in _PLACEHOLDERS_PORT:
            text = text.replace(placeholder, str(self._slots.port))
        return Ok(RouterConfig(slot=slot, upstream=upstream, text=text))

    def validate(self, config: RouterConfig) -> Result[ValidatedConfig, RouterError]:
        """Stage ``config`` and run ``nginx -t``; restore the live file on failure."""
        self._pending = None
        previous = self._read_generated()
        try:
            self._write_generated(config.text)
        except OSError as e:
            return Err(RouterError(kind="template", message=f"cannot stage router config: {e}"))

        self._console.print(f"{self._slots.router_service}: nginx -t", Style.DIM)
        result = self._runtime.service_exec(self._slots.router_service, ["nginx", "-t"])
        if isinstance(result, Err):
            self._restore(previous)
            return Err(RouterError(kind="invalid", message=result.error.detail))

        validated = ValidatedConfig(config, previous)
        self._pending = validated
        return Ok(validated)

    def commit(self, validated: ValidatedConfig) -> Result[None, RouterError]:
        """Hot-reload the router with a config that was just validated.

        Raises:
            RuntimeError: If ``validated`` is not the token returned by the
                immediately preceding ``validate`` call (programming error).
        """
        if validated is not self._pending:
            raise RuntimeError("commit() requires the token of the immediately preceding validate()")
        self._pending = None

        self._console.print(f"{self._slots.router_service}: nginx -s reload", Style.DIM)
        result = self._runtime.service_exec(
            self._slots.router_service, ["nginx", "-s", "reload"]
        )
        if isinstance(result, Err):
            self._restore(validated.previous)
            return Err(RouterError(kind="reload", message=result.error.detail))
        return Ok(None)

    def _read_generated(self) -> str | None:
        try:
            return self._generated_path.read_text(encoding="utf-8")
        except OSError:
            return None

    def _write_generated(self, text: str) -> None:
        # Written in place: the file is bind-mounted into the router container,
        # and replacing the inode would detach the mount.
        self._generated_path.parent.mkdir(parents=True, exist_ok=True)
        with self._generated_path.open("w", encoding="utf-8") as handle:
            handle.write(text)

    def _restore(self, previous: str | None) -> None:
        if previous is None:
            self._generated_path.unlink(missing_ok=True)
        else:
            self._write_generated(previous)
