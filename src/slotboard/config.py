"""Slotboard configuration loader (WI_0014).

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (SLOTBOARD_PROJECT_ID, SLOTBOARD_INSTANCE, SLOTBOARD_DB)
  3. Per-project slotboard.yaml  (next to .slotboard.db)
  4. Global ~/.slotboard/config.yaml  (timing and capacity defaults only — no credentials)
  5. Hardcoded defaults

Global config must never contain credentials; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from slotboard.models import storage_instance

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".slotboard"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "slotboard.yaml"

# Credential-like field names, forbidden in global config.
_CREDENTIAL_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential"
    r"|service[_\-]?account",
    re.IGNORECASE,
)

# Known top-level sections; anything else warns
_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["project", "store", "gesture", "slots", "in_flight", "pipeline", "listener", "logging"]
)

_POLICIES: frozenset[str] = frozenset(["coarse", "fine"])
_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ProjectCfg:
    """Project identity (slotboard.yaml: project:).

    Attributes:
        id: Project document id (``projects/{id}``).
        instance: Active partition; ``facebook`` is stored as ``fbig``.
        actor: User id recorded on activity entries and notifications.
        actor_name: Display name for the actor.
    """

    id: str = ""
    instance: str = "instagram"
    actor: str = ""
    actor_name: str = ""


@dataclass
class StoreCfg:
    """Local store paths (slotboard.yaml: store:). Relative paths resolve against the project dir."""

    db: str = ".slotboard.db"
    uploads: str = "uploads"


@dataclass
class GestureCfg:
    long_press_ms: int = 500
    move_threshold_px: int = 10
    frame_interval_ms: int = 16


@dataclass
class SlotsCfg:
    calendar_capacity: int = 4
    mobile_capacity: int = 3


@dataclass
class InFlightCfg:
    ttl_ms: int = 400


@dataclass
class PipelineCfg:
    """Persistence retries and batching (slotboard.yaml: pipeline:)."""

    max_attempts: int = 3
    backoff_base_ms: int = 1_000
    batch_window_ms: int = 0


@dataclass
class ListenerCfg:
    """Snapshot debounce and merge policy per surface (slotboard.yaml: listener:)."""

    debounce_ms: int = 250
    calendar_policy: str = "coarse"
    mobile_policy: str = "fine"


@dataclass
class LoggingCfg:
    level: str = "WARNING"
    json_file: str | None = None


@dataclass
class SlotboardConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    project: ProjectCfg = field(default_factory=ProjectCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    gesture: GestureCfg = field(default_factory=GestureCfg)
    slots: SlotsCfg = field(default_factory=SlotsCfg)
    in_flight: InFlightCfg = field(default_factory=InFlightCfg)
    pipeline: PipelineCfg = field(default_factory=PipelineCfg)
    listener: ListenerCfg = field(default_factory=ListenerCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_credentials(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any credential-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _CREDENTIAL_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _int(section: dict[str, Any], key: str, default: int, *, minimum: int, where: str) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{where}.{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigError(f"{where}.{key} must be >= {minimum}, got {value}")
    return value


def _policy(section: dict[str, Any], key: str, default: str) -> str:
    value = str(section.get(key, default)).lower()
    if value not in _POLICIES:
        raise ConfigError(
            f"listener.{key} must be one of {', '.join(sorted(_POLICIES))}, got '{value}'"
        )
    return value


def _level(section: dict[str, Any], default: str) -> str:
    value = str(section.get("level", default)).upper()
    if value not in _LEVELS:
        raise ConfigError(f"logging.level must be one of {', '.join(_LEVELS)}, got '{value}'")
    return value


def _instance(value: str) -> str:
    try:
        return storage_instance(value)
    except ValueError as exc:
        raise ConfigError(str(exc)) from None


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return raw


def _cfg_from_dict(data: dict[str, Any]) -> SlotboardConfig:
    """Build a *SlotboardConfig* from a merged raw YAML dict."""
    cfg = SlotboardConfig()

    if "project" in data:
        p = _section(data, "project")
        cfg.project = ProjectCfg(
            id=str(p.get("id", cfg.project.id) or ""),
            instance=_instance(str(p.get("instance", cfg.project.instance))),
            actor=str(p.get("actor", cfg.project.actor) or ""),
            actor_name=str(p.get("actor_name", cfg.project.actor_name) or ""),
        )

    if "store" in data:
        s = _section(data, "store")
        cfg.store = StoreCfg(
            db=str(s.get("db", cfg.store.db)),
            uploads=str(s.get("uploads", cfg.store.uploads)),
        )

    if "gesture" in data:
        g = _section(data, "gesture")
        cfg.gesture = GestureCfg(
            long_press_ms=_int(g, "long_press_ms", cfg.gesture.long_press_ms, minimum=1, where="gesture"),
            move_threshold_px=_int(g, "move_threshold_px", cfg.gesture.move_threshold_px, minimum=0, where="gesture"),
            frame_interval_ms=_int(g, "frame_interval_ms", cfg.gesture.frame_interval_ms, minimum=0, where="gesture"),
        )

    if "slots" in data:
        sl = _section(data, "slots")
        cfg.slots = SlotsCfg(
            calendar_capacity=_int(sl, "calendar_capacity", cfg.slots.calendar_capacity, minimum=1, where="slots"),
            mobile_capacity=_int(sl, "mobile_capacity", cfg.slots.mobile_capacity, minimum=1, where="slots"),
        )

    if "in_flight" in data:
        f = _section(data, "in_flight")
        cfg.in_flight = InFlightCfg(
            ttl_ms=_int(f, "ttl_ms", cfg.in_flight.ttl_ms, minimum=1, where="in_flight"),
        )

    if "pipeline" in data:
        pl = _section(data, "pipeline")
        cfg.pipeline = PipelineCfg(
            max_attempts=_int(pl, "max_attempts", cfg.pipeline.max_attempts, minimum=1, where="pipeline"),
            backoff_base_ms=_int(pl, "backoff_base_ms", cfg.pipeline.backoff_base_ms, minimum=0, where="pipeline"),
            batch_window_ms=_int(pl, "batch_window_ms", cfg.pipeline.batch_window_ms, minimum=0, where="pipeline"),
        )

    if "listener" in data:
        li = _section(data, "listener")
        cfg.listener = ListenerCfg(
            debounce_ms=_int(li, "debounce_ms", cfg.listener.debounce_ms, minimum=0, where="listener"),
            calendar_policy=_policy(li, "calendar_policy", cfg.listener.calendar_policy),
            mobile_policy=_policy(li, "mobile_policy", cfg.listener.mobile_policy),
        )

    if "logging" in data:
        lg = _section(data, "logging")
        cfg.logging = LoggingCfg(
            level=_level(lg, cfg.logging.level),
            json_file=lg.get("json_file") or cfg.logging.json_file,
        )

    return cfg


def _apply_env_overrides(cfg: SlotboardConfig) -> SlotboardConfig:
    """Apply SLOTBOARD_* environment variable overrides (layer 2)."""
    if project_id := os.environ.get("SLOTBOARD_PROJECT_ID"):
        cfg.project.id = project_id
    if instance := os.environ.get("SLOTBOARD_INSTANCE"):
        cfg.project.instance = _instance(instance)
    if db := os.environ.get("SLOTBOARD_DB"):
        cfg.store.db = db
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> SlotboardConfig:
    """Load and return a merged *SlotboardConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *slotboard.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *SlotboardConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains credential-like fields, or if
            any value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_credentials(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.slotboard/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Slotboard global configuration: timing and capacity defaults only.\n"
            "# NEVER store credentials here. Use environment variables.\n"
            "\n"
            "slots:\n"
            "  calendar_capacity: 4\n"
            "  mobile_capacity: 3\n"
            "\n"
            "pipeline:\n"
            "  max_attempts: 3\n"
            "  backoff_base_ms: 1000\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
