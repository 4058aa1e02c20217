"""Typed configuration loading and access.

Configuration comes from an optional ``hotfix.toml`` at the workspace root,
then ``HOTFIX_*`` environment variables override the release toggles so the
tool can be driven from deploy hooks without editing files.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Literal

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_str,
    get_str_list,
    get_table,
    parse_bool,
)

__all__ = [
    "CacheConfig",
    "ClassifierConfig",
    "Config",
    "ConfigError",
    "ContentConfig",
    "HealthConfig",
    "PipelineConfig",
    "ReleaseConfig",
    "SlotsConfig",
    "apply_env",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = "hotfix.toml"

DEFAULT_SERVER_PATTERNS: tuple[str, ...] = (
    r"^src/",
    r"^server/",
    r"^public/",
    r"^scripts/",
    r"^next\.config",
    r"^tailwind",
    r"^package\.json$",
    r"^package-lock\.json$",
    r"^Dockerfile$",
    r"^entrypoint\.sh$",
)

DEFAULT_CACHE_PATTERNS: tuple[str, ...] = ("articles:*", "article:*", "search:*", "graph:*")
REDIS_URL_SCHEMES: tuple[str, ...] = ("redis://", "rediss://", "unix://")

HealthMode = Literal["exec", "http"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Operator toggles for a full release."""

    rollback_window_sec: int = 0
    stop_old: bool = True
    prune_images: bool = True
    run_similarities: bool = False


@dataclass(frozen=True, slots=True)
class SlotsConfig:
    """Naming of the two slots and the router in front of them."""

    service_prefix: str = "frontend"
    container_prefix: str = "app-frontend"
    port: int = 3000
    router_service: str = "nginx"
    router_template: str = "nginx/nginx.conf.template"
    router_generated: str = "nginx/nginx.generated.conf"
    state_dir: str = "deploy-state"
    state_file: str = "frontend_active"


@dataclass(frozen=True, slots=True)
class HealthConfig:
    """Readiness gate for the candidate slot."""

    mode: HealthMode = "exec"
    max_attempts: int = 240
    interval_sec: float = 2.0
    path: str = "/api/ready"
    # Only used in http mode; {service}, {port} and {path} are substituted.
    url_template: str = "http://{service}:{port}{path}"


@dataclass(frozen=True, slots=True)
class ContentConfig:
    """Where content lives locally and inside the serving container."""

    dir: str = "content"
    container_root: str = "/app"
    writable_dirs: tuple[str, ...] = ("/app/content", "/app/cache", "/app/public/article-assets")
    owner: str = "nextjs:nodejs"


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Reindexing commands run inside the live instance after a content sync.

    An empty command disables the step.
    """

    ocr: str = "node scripts/run-ocr-images.js"
    entity_scan: str = "node scripts/scan-stocks.js"
    embed: str = "node scripts/run-embed-articles.js --provider both"
    similarity: str = "node scripts/run-compute-article-similarities.js"
    index: str = "node scripts/run-build-article-index.js"


@dataclass(frozen=True, slots=True)
class CacheConfig:
    enabled: bool = True
    redis_url: str = "redis://127.0.0.1:6379/0"
    patterns: tuple[str, ...] = DEFAULT_CACHE_PATTERNS
    batch_size: int = 500
    socket_timeout_sec: float = 5.0


@dataclass(frozen=True, slots=True)
class ClassifierConfig:
    server_patterns: tuple[str, ...] = DEFAULT_SERVER_PATTERNS
    # Empty means "derive from content.dir".
    content_patterns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    slots: SlotsConfig = field(default_factory=SlotsConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    content: ContentConfig = field(default_factory=ContentConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    @property
    def content_patterns(self) -> tuple[str, ...]:
        if self.classifier.content_patterns:
            return self.classifier.content_patterns
        return (rf"^{re.escape(self.content.dir)}(/|$)",)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a parsed TOML mapping.

        Raises:
            ValueError: If a value is present but out of range.
        """
        release: StrDict = get_table(data, "release")
        slots: StrDict = get_table(data, "slots")
        health: StrDict = get_table(data, "health")
        content: StrDict = get_table(data, "content")
        pipeline: StrDict = get_table(data, "pipeline")
        cache: StrDict = get_table(data, "cache")
        classifier: StrDict = get_table(data, "classifier")

        d_release = ReleaseConfig()
        d_slots = SlotsConfig()
        d_health = HealthConfig()
        d_content = ContentConfig()
        d_pipeline = PipelineConfig()
        d_cache = CacheConfig()
        d_classifier = ClassifierConfig()

        window = get_int(release, "rollback_window_sec")
        if window is not None and window < 0:
            raise ValueError("release.rollback_window_sec must be >= 0")

        mode = get_str(health, "mode") or d_health.mode
        if mode not in ("exec", "http"):
            raise ValueError(f"health.mode must be 'exec' or 'http', got {mode!r}")
        max_attempts = get_int(health, "max_attempts")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("health.max_attempts must be >= 1")
        redis_url = get_str(cache, "redis_url")
        if redis_url and not redis_url.startswith(REDIS_URL_SCHEMES):
            raise ValueError(
                f"cache.redis_url needs a redis://, rediss:// or unix:// scheme, got {redis_url!r}"
            )

        config = cls(
            release=ReleaseConfig(
                rollback_window_sec=window if window is not None else d_release.rollback_window_sec,
                stop_old=_bool_or(release, "stop_old", d_release.stop_old),
                prune_images=_bool_or(release, "prune_images", d_release.prune_images),
                run_similarities=_bool_or(release, "run_similarities", d_release.run_similarities),
            ),
            slots=SlotsConfig(
                service_prefix=get_str(slots, "service_prefix") or d_slots.service_prefix,
                container_prefix=get_str(slots, "container_prefix") or d_slots.container_prefix,
                port=get_int(slots, "port") or d_slots.port,
                router_service=get_str(slots, "router_service") or d_slots.router_service,
                router_template=get_str(slots, "router_template") or d_slots.router_template,
                router_generated=get_str(slots, "router_generated") or d_slots.router_generated,
                state_dir=get_str(slots, "state_dir") or d_slots.state_dir,
                state_file=get_str(slots, "state_file") or d_slots.state_file,
            ),
            health=HealthConfig(
                mode="http" if mode == "http" else "exec",
                max_attempts=max_attempts or d_health.max_attempts,
                interval_sec=_non_negative_float(health, "interval_sec", d_health.interval_sec),
                path=get_str(health, "path") or d_health.path,
                url_template=get_str(health, "url_template") or d_health.url_template,
            ),
            content=ContentConfig(
                dir=(get_str(content, "dir") or d_content.dir).strip("/"),
                container_root=get_str(content, "container_root") or d_content.container_root,
                writable_dirs=get_str_list(content, "writable_dirs") or d_content.writable_dirs,
                owner=get_str(content, "owner") or d_content.owner,
            ),
            pipeline=PipelineConfig(
                ocr=_command_or(pipeline, "ocr", d_pipeline.ocr),
                entity_scan=_command_or(pipeline, "entity_scan", d_pipeline.entity_scan),
                embed=_command_or(pipeline, "embed", d_pipeline.embed),
                similarity=_command_or(pipeline, "similarity", d_pipeline.similarity),
                index=_command_or(pipeline, "index", d_pipeline.index),
            ),
            cache=CacheConfig(
                enabled=_bool_or(cache, "enabled", d_cache.enabled),
                redis_url=redis_url or d_cache.redis_url,
                patterns=get_str_list(cache, "patterns") or d_cache.patterns,
                batch_size=get_int(cache, "batch_size") or d_cache.batch_size,
                socket_timeout_sec=_non_negative_float(
                    cache, "socket_timeout_sec", d_cache.socket_timeout_sec
                ),
            ),
            classifier=ClassifierConfig(
                server_patterns=get_str_list(classifier, "server_patterns")
                or d_classifier.server_patterns,
                content_patterns=get_str_list(classifier, "content_patterns")
                or d_classifier.content_patterns,
            ),
        )
        for pattern in (*config.classifier.server_patterns, *config.content_patterns):
            re.compile(pattern)
        return config


def _bool_or(table: Mapping[str, object], key: str, default: bool) -> bool:
    value = get_bool(table, key)
    return default if value is None else value


def _non_negative_float(table: Mapping[str, object], key: str, default: float) -> float:
    value = get_float(table, key)
    if value is None:
        return default
    if value < 0:
        raise ValueError(f"{key} must be >= 0")
    return value


def _command_or(table: Mapping[str, object], key: str, default: str) -> str:
    # An explicit empty string disables the step, so get_str() is not enough here.
    value = table.get(key)
    if isinstance(value, str):
        return value.strip()
    return default


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file."""
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError, re.error) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, defaults otherwise.

    A present but broken file is still an error: silently ignoring it could
    release with the wrong rollback window.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)


def apply_env(config: Config, environ: Mapping[str, str]) -> Result[Config, ConfigError]:
    """Apply HOTFIX_* environment overrides on top of a loaded config."""
    release = config.release
    cache = config.cache

    window_raw = environ.get("HOTFIX_ROLLBACK_WINDOW_SEC")
    if window_raw is not None and window_raw.strip():
        if not window_raw.strip().isdigit():
            return Err(
                ConfigError(
                    f"HOTFIX_ROLLBACK_WINDOW_SEC must be a non-negative integer, got {window_raw!r}",
                    hint="Example: HOTFIX_ROLLBACK_WINDOW_SEC=3600",
                )
            )
        release = replace(release, rollback_window_sec=int(window_raw.strip()))

    for env_name, attr in (
        ("HOTFIX_STOP_OLD", "stop_old"),
        ("HOTFIX_PRUNE_IMAGES", "prune_images"),
        ("HOTFIX_RUN_SIMILARITIES", "run_similarities"),
    ):
        raw = environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        value = parse_bool(raw)
        if value is None:
            return Err(
                ConfigError(
                    f"{env_name} must be true/false, got {raw!r}",
                    hint=f"Example: {env_name}=false",
                )
            )
        release = replace(release, **{attr: value})

    redis_url = environ.get("HOTFIX_REDIS_URL")
    if redis_url and redis_url.strip():
        redis_url = redis_url.strip()
        if not redis_url.startswith(REDIS_URL_SCHEMES):
            return Err(
                ConfigError(
                    f"HOTFIX_REDIS_URL must be a redis URL, got {redis_url!r}",
                    hint="Example: HOTFIX_REDIS_URL=redis://127.0.0.1:6379/0",
                )
            )
        cache = replace(cache, redis_url=redis_url)

    return Ok(replace(config, release=release, cache=cache))
