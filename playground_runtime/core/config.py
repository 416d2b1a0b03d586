from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

log = logging.getLogger("playgrounds.config")

DEFAULT_BASE_DIR = Path.home() / ".playgrounds"


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


class RuntimeConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8485
    base_dir: str = str(DEFAULT_BASE_DIR)
    catalog_dir: str = str(DEFAULT_BASE_DIR / "apps")
    log_level: str = "INFO"

    @property
    def base_path(self) -> Path:
        return Path(self.base_dir).expanduser()

    @property
    def github_dir(self) -> Path:
        return self.base_path / "github"

    @property
    def meta_path(self) -> Path:
        return self.base_path / "meta.json"

    @property
    def catalog_path(self) -> Path:
        return Path(self.catalog_dir).expanduser()

    @classmethod
    def default_config_path(cls) -> Path:
        return DEFAULT_BASE_DIR / "config.json"

    @classmethod
    def _resolve_path(cls, path: Path | None) -> Path:
        if path is not None:
            raw = str(path)
            candidate = Path(path).expanduser()
        else:
            raw = os.getenv("PLAYGROUNDS_CONFIG", "")
            candidate = Path(raw).expanduser() if raw.strip() else cls.default_config_path()

        raw = raw.strip()
        if raw.endswith(("/", "\\")) or raw in {".", ".."}:
            return candidate / "config.json"
        if candidate.is_dir():
            return candidate / "config.json"
        return candidate

    @classmethod
    def _default_for_path(cls, config_path: Path) -> "RuntimeConfig":
        base_dir = config_path.parent
        return cls(base_dir=str(base_dir), catalog_dir=str(base_dir / "apps"))

    @classmethod
    def _write_config_file(cls, config_path: Path, config: "RuntimeConfig") -> None:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(config.model_dump(), indent=2) + "\n", encoding="utf-8")

    @classmethod
    def _move_aside(cls, config_path: Path, tag: str, default_config: "RuntimeConfig", reason: Any) -> None:
        backup = config_path.with_name(f"{config_path.name}.{tag}-{_utc_stamp()}")
        try:
            config_path.rename(backup)
            cls._write_config_file(config_path, default_config)
            log.warning("Config %s; moved aside to %s (%s)", tag, backup, reason)
        except OSError as exc:
            log.warning("Failed to repair %s config %s: %s", tag, config_path, exc)

    @classmethod
    def load(cls, path: Path | None = None, *, create: bool = True) -> "RuntimeConfig":
        """
        Load the runtime config.

        Never raises on path/IO/JSON/validation issues. A missing file is
        written with defaults (when create=True); corrupt or invalid files are
        moved aside and regenerated.
        """
        config_path = cls._resolve_path(path)
        default_config = cls._default_for_path(config_path)

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.warning("Config dir unavailable (%s): %s; using defaults.", config_path, exc)
            return default_config

        if not config_path.exists():
            if create:
                try:
                    cls._write_config_file(config_path, default_config)
                except OSError as exc:
                    log.warning("Failed to create config file at %s: %s", config_path, exc)
            return default_config

        try:
            raw_text = config_path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            log.warning("Failed to read config file %s: %s", config_path, exc)
            return default_config

        try:
            data: dict[str, Any] = json.loads(raw_text or "{}")
        except json.JSONDecodeError as exc:
            if create:
                cls._move_aside(config_path, "corrupt", default_config, exc)
            return default_config

        try:
            config = cls.model_validate(data)
        except ValidationError as exc:
            if create:
                cls._move_aside(config_path, "invalid", default_config, exc)
            return default_config

        if not str(config.base_dir).strip():
            config.base_dir = default_config.base_dir
        if not str(config.catalog_dir).strip():
            config.catalog_dir = str(config.base_path / "apps")
        return config

    def ensure_dirs(self) -> None:
        for label, target in (("base_dir", self.base_path), ("github_dir", self.github_dir)):
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                log.warning("Unable to create %s (%s): %s", label, target, exc)
