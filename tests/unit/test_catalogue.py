"""Tests for the JSON catalogue store and backups."""

import asyncio
import json

import pytest

from conftest import make_col
from col_profiles.catalogue import BackupManager, JsonCatalogueStore
from col_profiles.errors import BackupError
from col_profiles.profile import build_profile, summarize_points


@pytest.fixture
def catalogue_path(tmp_path, three_cols):
    path = tmp_path / "cols.json"
    path.write_text(json.dumps([c.to_dict() for c in three_cols]))
    return path


class TestJsonCatalogueStore:
    def test_get_all(self, catalogue_path):
        cols = asyncio.run(JsonCatalogueStore(catalogue_path).get_all())
        assert [c.name for c in cols] == ["Col du Galibier", "Col de la Madeleine", "Col d'Izoard"]

    def test_get_by_id(self, catalogue_path):
        store = JsonCatalogueStore(catalogue_path)
        assert asyncio.run(store.get_by_id("2")).name == "Col de la Madeleine"
        assert asyncio.run(store.get_by_id("99")) is None

    def test_missing_file_is_empty(self, tmp_path):
        assert asyncio.run(JsonCatalogueStore(tmp_path / "none.json").get_all()) == []

    def test_update_profile_persists(self, catalogue_path, climb_points):
        profile = build_profile(summarize_points(climb_points), source="fake")
        store = JsonCatalogueStore(catalogue_path)
        assert asyncio.run(store.update_profile("2", profile)) is True

        reloaded = asyncio.run(JsonCatalogueStore(catalogue_path).get_by_id("2"))
        assert reloaded.elevation_profile is not None
        assert len(reloaded.elevation_profile.points) == 100
        assert reloaded.elevation_profile.segments == profile.segments
        assert reloaded.updated_at is not None
        # Other cols untouched
        assert asyncio.run(store.get_by_id("1")).elevation_profile is None

    def test_update_unknown_col(self, catalogue_path, climb_points):
        profile = build_profile(summarize_points(climb_points))
        before = catalogue_path.read_text()
        assert asyncio.run(JsonCatalogueStore(catalogue_path).update_profile("99", profile)) is False
        assert catalogue_path.read_text() == before

    def test_no_temp_files_left(self, catalogue_path, climb_points):
        profile = build_profile(summarize_points(climb_points))
        asyncio.run(JsonCatalogueStore(catalogue_path).update_profile("1", profile))
        assert [p.name for p in catalogue_path.parent.iterdir()] == ["cols.json"]

    def test_create_backup(self, catalogue_path, three_cols):
        store = JsonCatalogueStore(catalogue_path)
        path = asyncio.run(store.create_backup("snap", three_cols))
        assert path == catalogue_path.parent / "backups" / "snap.json"
        assert len(json.loads(path.read_text())) == 3

    def test_close(self, catalogue_path):
        store = JsonCatalogueStore(catalogue_path)
        asyncio.run(store.close())
        assert store.closed


class TestBackupManager:
    def test_snapshot_name_and_contents(self, catalogue_path):
        store = JsonCatalogueStore(catalogue_path)
        name = asyncio.run(BackupManager(store, clock=lambda: 1700000000.123).create_backup())
        assert name == "cols_backup_1700000000123"
        backup = json.loads((catalogue_path.parent / "backups" / f"{name}.json").read_text())
        assert [c["id"] for c in backup] == ["1", "2", "3"]

    def test_failure_raises_backup_error(self, catalogue_path):
        store = JsonCatalogueStore(catalogue_path)

        async def broken(name, cols):
            raise OSError("disk full")

        store.create_backup = broken
        with pytest.raises(BackupError):
            asyncio.run(BackupManager(store).create_backup())


class TestColSerialization:
    def test_round_trip(self, climb_points):
        col = make_col("7", "Mont Ventoux", elevation=1909.0)
        col.elevation_profile = build_profile(summarize_points(climb_points))
        restored = type(col).from_dict(json.loads(json.dumps(col.to_dict())))
        assert restored.id == "7"
        assert restored.coordinates == col.coordinates
        assert restored.elevation_profile.points == col.elevation_profile.points
        assert restored.elevation_profile.generated_at == col.elevation_profile.generated_at
