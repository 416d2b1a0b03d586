from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from playground_runtime.core.errors import StorageError
from playground_runtime.records import RECORD, DockerPlayground, GithubPlayground

Record = GithubPlayground | DockerPlayground


class MetadataStore:
    """The metadata file is the only source of truth; every call re-reads it.

    There is no locking and no atomic replace. Two interleaved
    read-modify-write sequences can lose one side's update.
    """

    def __init__(self, meta_path: Path, github_dir: Path, logger: logging.Logger | None = None):
        self.meta_path = Path(meta_path)
        self.github_dir = Path(github_dir)
        self.logger = logger or logging.getLogger("playgrounds.store")

    def _ensure_dirs(self) -> None:
        try:
            self.meta_path.parent.mkdir(parents=True, exist_ok=True)
            self.github_dir.mkdir(parents=True, exist_ok=True)
            if not self.meta_path.exists():
                self.meta_path.write_text("[]", encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Unable to prepare metadata at {self.meta_path}: {exc}") from exc

    def read_all(self) -> list[Record]:
        self._ensure_dirs()
        try:
            raw = self.meta_path.read_text(encoding="utf-8")
        except OSError as exc:
            self.logger.warning("store.read.failed", extra={"path": str(self.meta_path), "error": str(exc)})
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            self.logger.warning("store.read.corrupt", extra={"path": str(self.meta_path), "error": str(exc)})
            return []
        if not isinstance(data, list):
            self.logger.warning("store.read.corrupt", extra={"path": str(self.meta_path), "error": "not a list"})
            return []
        records: list[Record] = []
        for index, item in enumerate(data):
            try:
                records.append(RECORD.validate_python(item))
            except ValidationError as exc:
                # Skipped entries are dropped from the file by the next write.
                self.logger.warning(
                    "store.read.invalid",
                    extra={"path": str(self.meta_path), "index": index, "error": str(exc).splitlines()[0]},
                )
        return records

    def write_all(self, records: Sequence[Record]) -> None:
        self._ensure_dirs()
        payload = [record.to_json_dict() for record in records]
        try:
            self.meta_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Unable to write metadata to {self.meta_path}: {exc}") from exc

    def find(self, playground_id: str) -> Record | None:
        for record in self.read_all():
            if record.id == playground_id:
                return record
        return None
