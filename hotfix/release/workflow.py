"""Release workflows: content hot-sync, blue/green full release, auto.

Each public entry point takes the release lock, runs preflight checks, then
orchestrates the components. A fatal step returns a ``ReleaseError`` before
any later step runs; the active slot only changes after the router reload
committed, so every early return leaves the previous slot serving.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from hotfix.core.config import Config
from hotfix.core.result import Err, Ok, Result
from hotfix.core.workspace import Workspace
from hotfix.git.repository import Repository
from hotfix.output.console import ConsoleProtocol, Style
from hotfix.platform.http import HttpClient, RealHttpClient
from hotfix.release.cache import CacheInvalidator, InvalidationReport, redis_client_factory
from hotfix.release.changelog import update_changelog
from hotfix.release.classifier import (
    ChangeClassifier,
    collect_changed_paths,
    resolve_diff_base,
)
from hotfix.release.diff import ContentDiffEngine
from hotfix.release.errors import ReleaseError
from hotfix.release.health import (
    PROBE_TIMEOUT_FLOOR_SECONDS,
    ExecProbe,
    HealthGate,
    HttpProbe,
    ReadinessProbe,
    node_fetch_command,
)
from hotfix.release.lock import release_lock
from hotfix.release.model import (
    Classification,
    ContentDiff,
    ContentItem,
    RollbackTask,
    Slot,
    SlotNames,
)
from hotfix.release.preflight import ensure_submodules, run_preflight
from hotfix.release.rollback import DetachedLauncher, RollbackScheduler, RollbackTaskStore
from hotfix.release.state import ColorStateStore
from hotfix.release.sync import ContainerTarget, ContentSyncEngine, SyncReport
from hotfix.release.traffic import TrafficSwitch
from hotfix.runtime.compose import ComposeRuntime, ContainerRuntime

__all__ = [
    "ContentSyncOutcome",
    "FullReleaseOutcome",
    "ReleaseDeps",
    "auto_release",
    "content_sync",
    "full_release",
]

MAX_LISTED_CHANGES = 20


def _no_checks() -> Result[None, ReleaseError]:
    return Ok(None)


@dataclass
class ReleaseDeps:
    """Everything a workflow touches, wired once per command."""

    workspace: Workspace
    config: Config
    console: ConsoleProtocol
    runtime: ContainerRuntime
    repo: Repository
    store: ColorStateStore
    traffic: TrafficSwitch
    gate: HealthGate
    scheduler: RollbackScheduler
    cache: CacheInvalidator
    http: HttpClient
    checks: Callable[[], Result[None, ReleaseError]] = field(default=_no_checks)

    @property
    def state_dir(self) -> Path:
        return self.workspace.resolve(self.config.slots.state_dir)

    @classmethod
    def from_workspace(
        cls,
        workspace: Workspace,
        config: Config,
        console: ConsoleProtocol,
    ) -> ReleaseDeps:
        root = workspace.root
        slots = config.slots
        runtime = ComposeRuntime(root)
        repo = Repository(root)
        state_dir = workspace.resolve(slots.state_dir)
        store = ColorStateStore(
            state_dir / slots.state_file,
            workspace.resolve(slots.router_generated),
            slots,
        )

        def checks() -> Result[None, ReleaseError]:
            pre = run_preflight(workspace, runtime, console)
            if isinstance(pre, Err):
                return pre
            return ensure_submodules(repo, console)

        return cls(
            workspace=workspace,
            config=config,
            console=console,
            runtime=runtime,
            repo=repo,
            store=store,
            traffic=TrafficSwitch(
                runtime=runtime,
                template_path=workspace.resolve(slots.router_template),
                generated_path=workspace.resolve(slots.router_generated),
                slots=slots,
                console=console,
            ),
            gate=HealthGate(console),
            scheduler=RollbackScheduler(
                runtime=runtime,
                tasks=RollbackTaskStore(state_dir / "rollback"),
                launcher=DetachedLauncher(root),
                slots=slots,
                console=console,
            ),
            cache=CacheInvalidator(
                redis_client_factory(
                    config.cache.redis_url,
                    socket_timeout=config.cache.socket_timeout_sec,
                ),
                console,
                batch_size=config.cache.batch_size,
            ),
            http=RealHttpClient(),
            checks=checks,
        )


@dataclass(frozen=True, slots=True)
class ContentSyncOutcome:
    base: str | None
    diff: ContentDiff
    report: SyncReport | None
    cache: InvalidationReport | None


@dataclass(frozen=True, slots=True)
class FullReleaseOutcome:
    previous: Slot
    active: Slot
    attempts: int
    rollback_task: RollbackTask | None


def content_sync(deps: ReleaseDeps, base: str | None = None) -> Result[ContentSyncOutcome, ReleaseError]:
    """Hot-sync content changes into the live slot (no restart)."""
    with release_lock(deps.state_dir, "content-sync") as acquired:
        if isinstance(acquired, Err):
            return acquired
        checked = deps.checks()
        if isinstance(checked, Err):
            return checked
        return _content_sync(deps, base)


def full_release(
    deps: ReleaseDeps,
    cancel: threading.Event | None = None,
) -> Result[FullReleaseOutcome, ReleaseError]:
    """Build, start and health-check the standby slot, then switch traffic."""
    with release_lock(deps.state_dir, "full-release") as acquired:
        if isinstance(acquired, Err):
            return acquired
        checked = deps.checks()
        if isinstance(checked, Err):
            return checked
        return _full_release(deps, cancel)


def auto_release(
    deps: ReleaseDeps,
    cancel: threading.Event | None = None,
) -> Result[Classification, ReleaseError]:
    """Classify changes since the last pull and run the matching workflow."""
    with release_lock(deps.state_dir, "auto") as acquired:
        if isinstance(acquired, Err):
            return acquired
        checked = deps.checks()
        if isinstance(checked, Err):
            return checked
        return _auto(deps, cancel)


_MANUAL_HINT = "Run `hotfix content-sync` or `hotfix full-release` explicitly"


def _auto(deps: ReleaseDeps, cancel: threading.Event | None) -> Result[Classification, ReleaseError]:
    console = deps.console
    console.header("Auto-detecting changes")

    if not deps.repo.exists():
        return Err(
            ReleaseError(
                kind="precondition_failed",
                message="not a git repository",
                hint=_MANUAL_HINT,
            )
        )

    base = resolve_diff_base(deps.repo)
    if base is None:
        return Err(
            ReleaseError(
                kind="no_revision_boundary",
                message="ORIG_HEAD not found (no recent git pull?) and HEAD@{1} unavailable",
                hint=_MANUAL_HINT,
            )
        )
    if base.fallback:
        console.warning("ORIG_HEAD not found; falling back to HEAD@{1} for diff base.")

    changed = collect_changed_paths(deps.repo, base.rev, console)
    if isinstance(changed, Err):
        return changed
    paths = changed.value
    if not paths:
        return Err(ReleaseError(kind="no_changes", message="no changes detected", hint=_MANUAL_HINT))

    console.print("Changed files:")
    for path in paths[:MAX_LISTED_CHANGES]:
        console.print(f"  {path}", Style.DIM)
    if len(paths) > MAX_LISTED_CHANGES:
        console.print(f"  ... and {len(paths) - MAX_LISTED_CHANGES} more", Style.DIM)

    classifier = ChangeClassifier(deps.config.classifier.server_patterns, deps.config.content_patterns)
    classification = classifier.classify(paths)
    match classification:
        case Classification.FULL_RELEASE:
            console.warning("Detected server code changes, running a blue/green release...")
            released = _full_release(deps, cancel)
            if isinstance(released, Err):
                return released
        case Classification.CONTENT_ONLY:
            console.warning("Detected content changes only, syncing content...")
            synced = _content_sync(deps, base.rev)
            if isinstance(synced, Err):
                return synced
        case Classification.AMBIGUOUS:
            return Err(
                ReleaseError(
                    kind="ambiguous_changes",
                    message="changes match neither content nor server patterns",
                    hint=_MANUAL_HINT,
                )
            )
    return Ok(classification)


def _content_sync(deps: ReleaseDeps, base: str | None) -> Result[ContentSyncOutcome, ReleaseError]:
    console = deps.console
    config = deps.config
    content_dir = config.content.dir

    console.header("Content sync (no downtime)")
    active = deps.store.get_active()
    names = SlotNames.for_slot(active, config.slots)
    if not deps.runtime.is_running(names.service):
        return Err(
            ReleaseError(
                kind="precondition_failed",
                message=f"live slot is not running ({names.service})",
                hint=f"docker compose up -d {names.service}",
            )
        )
    console.info(f"Live slot: {names.service}")

    is_repo = deps.repo.exists()
    if base is None and is_repo:
        resolved = resolve_diff_base(deps.repo)
        base = resolved.rev if resolved is not None else None

    engine = ContentDiffEngine(deps.repo, content_dir)
    if base is not None:
        computed = engine.diff(base)
        if isinstance(computed, Err):
            return Err(
                ReleaseError(
                    kind="diff_failed",
                    message=f"cannot diff {content_dir} against {base}: {computed.error.message}",
                    hint="Pass an explicit base: hotfix content-sync --base <rev>",
                )
            )
        diff = _include_worktree(deps, computed.value)
    else:
        console.warning(
            "No revision boundary; copying the whole content tree (deletions are not propagated)"
        )
        diff = engine.from_tree(deps.workspace.root)

    if diff.is_empty:
        console.info(f"No content changes since {base}")
        return Ok(ContentSyncOutcome(base=base, diff=diff, report=None, cache=None))

    target = ContainerTarget(
        deps.runtime,
        names.container,
        root=config.content.container_root,
        writable_dirs=config.content.writable_dirs,
        owner=config.content.owner,
    )
    sync = ContentSyncEngine(deps.workspace.root, content_dir, config.pipeline, console)
    report = sync.apply(diff, target, run_similarities=config.release.run_similarities)

    cache_report = _invalidate_cache(deps)
    if is_repo:
        _update_changelog(
            deps,
            kind="Articles Update",
            deploy_type="hotfix (articles)",
            base=base,
            paths=(f"{content_dir}/",),
        )

    console.success("Content updated")
    return Ok(ContentSyncOutcome(base=base, diff=diff, report=report, cache=cache_report))


def _include_worktree(deps: ReleaseDeps, diff: ContentDiff) -> ContentDiff:
    """Fold uncommitted content changes into a committed diff."""
    changes = deps.repo.worktree_changes()
    if isinstance(changes, Err):
        deps.console.warning(f"cannot list working tree changes: {changes.error.message}")
        return diff

    content_dir = deps.config.content.dir
    pending = [p for p in changes.value if p.startswith(f"{content_dir}/")]
    if not pending:
        return diff

    to_copy = set(diff.paths_to_copy)
    added = {i.path for i in diff.added}
    modified = set(diff.modified)
    deleted = set(diff.deleted)
    for path in pending:
        if path in to_copy:
            continue
        if (deps.workspace.root / path).is_file():
            deleted.discard(path)
            modified.add(ContentItem(path=path))
        elif path not in added:
            deleted.add(path)

    return ContentDiff(
        added=diff.added,
        modified=frozenset(modified),
        deleted=frozenset(deleted),
        renamed=diff.renamed,
    )


def _full_release(
    deps: ReleaseDeps,
    cancel: threading.Event | None,
) -> Result[FullReleaseOutcome, ReleaseError]:
    console = deps.console
    config = deps.config
    slots = config.slots

    console.header("Blue/green release (no downtime)")
    active = deps.store.get_active()
    target = active.other
    live = SlotNames.for_slot(active, slots)
    candidate = SlotNames.for_slot(target, slots)
    console.info(f"Active: {live.service}")
    console.info(f"Target: {candidate.service}")

    # The router must be up to switch traffic and to serve its fallback page.
    deps.runtime.up(slots.router_service)
    if not deps.runtime.is_running(slots.router_service):
        return Err(
            ReleaseError(
                kind="precondition_failed",
                message=f"{slots.router_service} is not running; cannot switch traffic safely",
                hint=f"docker compose ps {slots.router_service}",
            )
        )

    console.info(f"Building {candidate.service}...")
    built = deps.runtime.build(candidate.service)
    if isinstance(built, Err):
        return Err(
            ReleaseError(
                kind="build_failed",
                message=f"image build failed for {candidate.service}: {built.error}",
                hint=f"docker compose build {candidate.service}",
            )
        )

    console.info(f"Starting {candidate.service}...")
    started = deps.runtime.up(candidate.service, recreate=True)
    if isinstance(started, Err):
        return Err(
            ReleaseError(
                kind="start_failed",
                message=f"cannot start {candidate.service}: {started.error.detail}",
                hint=f"docker compose logs -f {candidate.service}",
            )
        )

    probe = _readiness_probe(deps, candidate)
    console.info(f"Waiting for {candidate.service} readiness ({probe.describe()})...")
    ready = deps.gate.wait_ready(
        probe,
        max_attempts=config.health.max_attempts,
        interval=config.health.interval_sec,
        cancel=cancel,
    )
    if isinstance(ready, Err):
        if ready.error.cancelled:
            return Err(
                ReleaseError(
                    kind="cancelled",
                    message=f"release cancelled while waiting for {candidate.service}",
                    hint=f"{live.service} still serves traffic; docker compose stop {candidate.service}",
                )
            )
        return Err(
            ReleaseError(
                kind="health_timeout",
                message=(
                    f"{candidate.service} failed to become healthy after "
                    f"{ready.error.attempts} attempts"
                ),
                hint=f"Check logs: docker compose logs -f {candidate.service}",
            )
        )

    console.info("Switching traffic...")
    rendered = deps.traffic.prepare(target)
    if isinstance(rendered, Err):
        return Err(ReleaseError(kind="config_invalid", message=rendered.error.message))
    validated = deps.traffic.validate(rendered.value)
    if isinstance(validated, Err):
        return Err(
            ReleaseError(
                kind="config_invalid",
                message=f"router config check failed: {validated.error.message}",
                hint=f"docker compose exec -T {slots.router_service} nginx -t",
            )
        )
    committed = deps.traffic.commit(validated.value)
    if isinstance(committed, Err):
        return Err(
            ReleaseError(
                kind="reload_failed",
                message=f"router reload failed: {committed.error.message}",
                hint=f"previous config restored; docker compose logs {slots.router_service}",
            )
        )

    deps.store.set_active(target)
    console.success(f"Traffic switched to {candidate.service}")

    task = _retire_previous(deps, active, target)
    _prune_images(deps)
    _invalidate_cache(deps)
    if deps.repo.exists():
        base = resolve_diff_base(deps.repo)
        _update_changelog(
            deps,
            kind="Frontend Update",
            deploy_type="hotfix (frontend)",
            base=base.rev if base is not None else None,
            switch=(active, target),
        )

    console.success(f"Release complete. Active is now: {candidate.service}")
    return Ok(
        FullReleaseOutcome(
            previous=active,
            active=target,
            attempts=ready.value,
            rollback_task=task,
        )
    )


def _readiness_probe(deps: ReleaseDeps, candidate: SlotNames) -> ReadinessProbe:
    health = deps.config.health
    port = deps.config.slots.port
    if health.mode == "http":
        url = health.url_template.format(service=candidate.service, port=port, path=health.path)
        return HttpProbe(deps.http, url)
    return ExecProbe(
        deps.runtime,
        candidate.container,
        node_fetch_command(port, health.path),
        timeout=max(health.interval_sec, PROBE_TIMEOUT_FLOOR_SECONDS),
    )


def _retire_previous(deps: ReleaseDeps, previous: Slot, active: Slot) -> RollbackTask | None:
    release = deps.config.release
    old = SlotNames.for_slot(previous, deps.config.slots)
    if not release.stop_old:
        deps.console.warning(
            f"Keeping {old.service} running (stop_old=false). Stop it after verification:"
        )
        deps.console.hint(f"docker compose stop {old.service}")
        return None
    return deps.scheduler.schedule(
        expected_active=active,
        slot_to_stop=previous,
        window_seconds=release.rollback_window_sec,
    )


def _prune_images(deps: ReleaseDeps) -> None:
    if not deps.config.release.prune_images:
        deps.console.warning("Skipping dangling image prune (prune_images=false)")
        return
    pruned = deps.runtime.prune_images()
    if isinstance(pruned, Err):
        deps.console.warning(f"image prune failed: {pruned.error.detail}")


def _invalidate_cache(deps: ReleaseDeps) -> InvalidationReport | None:
    cache = deps.config.cache
    if not cache.enabled:
        return None
    return deps.cache.invalidate(cache.patterns)


def _update_changelog(
    deps: ReleaseDeps,
    *,
    kind: str,
    deploy_type: str,
    base: str | None,
    paths: tuple[str, ...] = (),
    switch: tuple[Slot, Slot] | None = None,
) -> None:
    updated = update_changelog(
        deps.workspace.changelog_path,
        deps.repo,
        kind=kind,
        deploy_type=deploy_type,
        base=base,
        paths=paths,
        switch=switch,
    )
    match updated:
        case Ok(True):
            deps.console.info("Changelog updated")
        case Ok(False):
            pass
        case Err(reason):
            deps.console.warning(f"changelog not updated: {reason}")
