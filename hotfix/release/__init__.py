"""Release orchestration: slot state, health gate, traffic switch, content sync."""

from .cache import CacheInvalidator, InvalidationReport
from .classifier import ChangeClassifier, collect_changed_paths, resolve_diff_base
from .diff import ContentDiffEngine
from .errors import ReleaseError, exit_code_for
from .health import ExecProbe, HealthGate, HealthTimeout, HttpProbe
from .model import (
    Classification,
    ContentDiff,
    ContentItem,
    DeploymentState,
    RollbackTask,
    Slot,
    SlotNames,
)
from .rollback import RollbackScheduler, RollbackTaskStore
from .state import ColorStateStore
from .sync import ContainerTarget, ContentSyncEngine, DirectoryTarget, SyncReport
from .traffic import TrafficSwitch, ValidatedConfig

__all__ = [
    # components
    "CacheInvalidator",
    "ChangeClassifier",
    "ColorStateStore",
    "ContentDiffEngine",
    "ContentSyncEngine",
    "HealthGate",
    "RollbackScheduler",
    "TrafficSwitch",
    # model
    "Classification",
    "ContentDiff",
    "ContentItem",
    "DeploymentState",
    "RollbackTask",
    "Slot",
    "SlotNames",
    # supporting types
    "ContainerTarget",
    "DirectoryTarget",
    "ExecProbe",
    "HealthTimeout",
    "HttpProbe",
    "InvalidationReport",
    "ReleaseError",
    "RollbackTaskStore",
    "SyncReport",
    "ValidatedConfig",
    "collect_changed_paths",
    "exit_code_for",
    "resolve_diff_base",
]
