from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_dir

from ..mode import OperationMode
from .models import CoreConfig

APP_NAME = "pyforge"


def _candidate_paths(cwd: Path) -> list[Path]:
    # project-level (higher priority)
    return [
        cwd / ".pyforge.json",
        cwd / "pyforge.json",
        cwd / ".pyforge.yaml",
        cwd / "pyforge.yaml",
    ]


def _global_candidate_paths() -> list[Path]:
    cfg_dir = Path(user_config_dir(APP_NAME))
    return [
        cfg_dir / "pyforge.json",
        cfg_dir / "pyforge.yaml",
    ]


def _load_file(p: Path) -> dict[str, Any] | None:
    try:
        text = p.read_text(encoding="utf-8")
        if p.suffix.lower() in {".yaml", ".yml"}:
            obj = yaml.safe_load(text)
        else:
            obj = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError):
        return None
    if isinstance(obj, dict):
        return obj
    return None


def _merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dicts(out[k], v)  # type: ignore
        else:
            out[k] = v
    return out


def _pos_int(v: Any) -> int | None:
    if isinstance(v, int) and not isinstance(v, bool) and v > 0:
        return v
    return None


def _pos_float(v: Any) -> float | None:
    if isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0:
        return float(v)
    return None


def config_from_dict(merged: dict[str, Any]) -> CoreConfig:
    cfg = CoreConfig()

    dm = merged.get("default_mode")
    if isinstance(dm, str):
        try:
            cfg.default_mode = OperationMode.parse(dm)
        except ValueError:
            pass

    for key in ("max_read_lines", "max_find_results", "max_list_entries", "max_file_size", "fetch_max_attempts",
                "fetch_initial_backoff_ms", "fetch_max_chars", "undo_max_entries_per_path"):
        v = _pos_int(merged.get(key))
        if v is not None:
            setattr(cfg, key, v)

    for key in ("shell_timeout", "fetch_timeout", "fetch_backoff_factor"):
        v = _pos_float(merged.get(key))
        if v is not None:
            setattr(cfg, key, v)

    sh = merged.get("shell")
    if isinstance(sh, str) and sh.strip():
        cfg.shell = sh.strip()

    robots = merged.get("fetch_respect_robots")
    if isinstance(robots, bool):
        cfg.fetch_respect_robots = robots

    codes = merged.get("fetch_retry_status_codes")
    if isinstance(codes, list) and all(isinstance(c, int) for c in codes):
        cfg.fetch_retry_status_codes = list(codes)

    ign = merged.get("ignored_dirs")
    if isinstance(ign, list):
        cfg.ignored_dirs = [d for d in ign if isinstance(d, str) and d.strip()]

    return cfg


def load_core_config(*, cwd: Path, explicit_path: Path | None = None) -> CoreConfig:
    """Load execution-core config.

    Merge order: global < project < explicit_path.
    """
    merged: dict[str, Any] = {}
    loaded_from: Path | None = None

    for p in _global_candidate_paths():
        if p.exists() and p.is_file():
            obj = _load_file(p)
            if obj is not None:
                merged = _merge_dicts(merged, obj)
                loaded_from = p

    for p in _candidate_paths(cwd):
        if p.exists() and p.is_file():
            obj = _load_file(p)
            if obj is not None:
                merged = _merge_dicts(merged, obj)
                loaded_from = p
                break  # first match wins for project-level

    if explicit_path is not None:
        p = explicit_path.expanduser().resolve()
        if not p.is_file():
            raise FileNotFoundError(f"Config file not found: {p}")
        obj = _load_file(p)
        if obj is None:
            raise ValueError(f"Config file must contain a mapping: {p}")
        merged = _merge_dicts(merged, obj)
        loaded_from = p

    cfg = config_from_dict(merged)
    cfg.loaded_from = loaded_from
    return cfg
