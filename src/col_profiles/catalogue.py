"""JSON-file catalogue of cols, plus snapshot backups."""

import json
import logging
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

from col_profiles.errors import BackupError
from col_profiles.models import Col, ElevationProfile

logger = logging.getLogger(__name__)


def _write_json_atomic(path: Path, data) -> None:
    """Write JSON to a temp file beside ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class JsonCatalogueStore:
    """Col catalogue stored as a JSON list of col documents.

    Profile updates rewrite the whole file atomically, so a reader sees either
    the previous catalogue or the updated one, never a partial write.
    """

    def __init__(self, path: Path, backup_dir: Path | None = None):
        self.path = Path(path)
        self.backup_dir = Path(backup_dir) if backup_dir else self.path.parent / "backups"
        self._documents: list[dict] | None = None
        self.closed = False

    def _load(self) -> list[dict]:
        if self._documents is None:
            if self.path.exists():
                with self.path.open(encoding="utf-8") as f:
                    self._documents = json.load(f)
            else:
                logger.warning("Catalogue %s does not exist, treating it as empty", self.path)
                self._documents = []
        return self._documents

    async def get_all(self) -> list[Col]:
        return [Col.from_dict(doc) for doc in self._load()]

    async def get_by_id(self, col_id: str) -> Col | None:
        for doc in self._load():
            if str(doc["id"]) == str(col_id):
                return Col.from_dict(doc)
        return None

    async def update_profile(self, col_id: str, profile: ElevationProfile) -> bool:
        """Replace a col's profile. Returns False if the col is unknown."""
        documents = self._load()
        for i, doc in enumerate(documents):
            if str(doc["id"]) == str(col_id):
                updated = dict(doc)
                updated["elevation_profile"] = profile.to_dict()
                updated["updated_at"] = datetime.now(timezone.utc).isoformat()
                new_documents = documents[:i] + [updated] + documents[i + 1:]
                _write_json_atomic(self.path, new_documents)
                self._documents = new_documents
                return True
        return False

    async def create_backup(self, snapshot_name: str, cols: list[Col]) -> Path:
        backup_path = self.backup_dir / f"{snapshot_name}.json"
        _write_json_atomic(backup_path, [c.to_dict() for c in cols])
        return backup_path

    async def close(self) -> None:
        self._documents = None
        self.closed = True


class BackupManager:
    """Snapshot the whole catalogue before a destructive regeneration run."""

    def __init__(self, store, clock=time.time):
        self.store = store
        self._clock = clock

    async def create_backup(self) -> str:
        """Copy every col into a timestamped snapshot and return its name.

        Raises:
            BackupError: If reading the catalogue or writing the snapshot fails.
        """
        try:
            cols = await self.store.get_all()
            snapshot_name = f"cols_backup_{int(self._clock() * 1000)}"
            await self.store.create_backup(snapshot_name, cols)
        except Exception as e:
            logger.error("Catalogue backup failed: %s", e)
            raise BackupError("Failed to back up the col catalogue") from e

        logger.info("Backup created: %s (%d cols)", snapshot_name, len(cols))
        return snapshot_name
