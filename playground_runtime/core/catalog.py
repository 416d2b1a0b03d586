from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from playground_runtime.records import AppCatalogEntry

REQUIRED_FIELDS = ("id", "name", "description")


class AppCatalog:
    """Installable app descriptors read from ``<catalog_dir>/<id>.json``.

    The directory is scanned on first access and the result is cached for
    the lifetime of the instance, including an empty result.
    """

    def __init__(self, catalog_dir: Path, logger: logging.Logger | None = None):
        self.catalog_dir = Path(catalog_dir)
        self.logger = logger or logging.getLogger("playgrounds.catalog")
        self._entries: list[AppCatalogEntry] | None = None

    def entries(self) -> list[AppCatalogEntry]:
        if self._entries is None:
            self._entries = self._load()
        return list(self._entries)

    def get(self, app_id: str) -> AppCatalogEntry | None:
        for entry in self.entries():
            if entry.id == app_id:
                return entry
        return None

    def _load(self) -> list[AppCatalogEntry]:
        if not self.catalog_dir.is_dir():
            self.logger.warning("catalog.dir.missing", extra={"catalog_dir": str(self.catalog_dir)})
            return []
        loaded: list[AppCatalogEntry] = []
        for path in sorted(self.catalog_dir.glob("*.json")):
            entry = self._load_file(path)
            if entry is not None:
                loaded.append(entry)
        self.logger.info("catalog.loaded", extra={"catalog_dir": str(self.catalog_dir), "count": len(loaded)})
        return loaded

    def _load_file(self, path: Path) -> AppCatalogEntry | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.error("catalog.file.unreadable", extra={"file": path.name, "error": str(exc)})
            return None
        if not isinstance(data, dict):
            self.logger.warning("catalog.file.invalid", extra={"file": path.name, "error": "not an object"})
            return None
        missing = [key for key in REQUIRED_FIELDS if not data.get(key)]
        if not (data.get("repoUrl") or data.get("sourceUrl")):
            missing.append("repoUrl")
        if missing:
            self.logger.warning("catalog.file.invalid", extra={"file": path.name, "missing": missing})
            return None
        try:
            entry = AppCatalogEntry.model_validate(data)
        except ValidationError as exc:
            self.logger.warning("catalog.file.invalid", extra={"file": path.name, "error": str(exc).splitlines()[0]})
            return None
        if entry.id != path.stem:
            self.logger.warning("catalog.id.mismatch", extra={"file": path.name, "declared": entry.id})
            entry = entry.model_copy(update={"id": path.stem})
        return entry
