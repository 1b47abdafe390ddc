"""Tests for registry JSON persistence."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from globtim_pipeline.registry import (
    REGISTRY_VERSION,
    ExperimentStatus,
    PipelineRegistry,
    load_registry,
    save_registry,
)

ROOT = "/data/globtim_results"


@pytest.fixture
def saved_registry() -> PipelineRegistry:
    """Registry with one parsed, one analyzed and one unparsed entry."""
    registry = PipelineRegistry(
        results_root=ROOT,
        last_scan=datetime(2025, 10, 9, 16, 0, 0),
        config={"objective_family": "lotka_volterra_4d"},
    )
    registry.add_experiment(
        f"{ROOT}/lv4d_GN16_deg4-12_dom0.1_seed42_20251009_153430",
        "lv4d_GN16_deg4-12_dom0.1_seed42_20251009_153430",
        completed_at=datetime(2025, 10, 9, 15, 34, 30),
        discovered_at=datetime(2025, 10, 9, 15, 40, 0),
    )
    registry.add_experiment(
        f"{ROOT}/lv4d_GN8_deg4-12_dom0.2_seedrandom_20251009_120000",
        "lv4d_GN8_deg4-12_dom0.2_seedrandom_20251009_120000",
        discovered_at=datetime(2025, 10, 9, 12, 5, 0),
    )
    registry.update_status(
        f"{ROOT}/lv4d_GN8_deg4-12_dom0.2_seedrandom_20251009_120000",
        ExperimentStatus.ANALYZED,
        datetime(2025, 10, 9, 13, 0, 0),
    )
    registry.add_experiment(
        f"{ROOT}/scratch", "scratch", discovered_at=datetime(2025, 10, 9, 12, 0, 0)
    )
    return registry


class TestRoundTrip:
    """Tests for save_registry followed by load_registry."""

    def test_round_trip_preserves_entries(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """Every entry field survives a save/load cycle."""
        save_registry(saved_registry, registry_file)
        loaded = load_registry(registry_file, results_root="/elsewhere")

        assert dict(loaded.entries) == dict(saved_registry.entries)
        assert loaded.results_root == ROOT
        assert loaded.last_scan == datetime(2025, 10, 9, 16, 0, 0)
        assert loaded.config == {"objective_family": "lotka_volterra_4d"}

    def test_indices_rebuilt_on_load(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """Loaded indices match the saved registry's indices."""
        save_registry(saved_registry, registry_file)
        loaded = load_registry(registry_file, results_root=ROOT)

        assert dict(loaded.by_hash) == dict(saved_registry.by_hash)
        assert dict(loaded.by_gn) == dict(saved_registry.by_gn)
        assert dict(loaded.by_domain) == dict(saved_registry.by_domain)

    def test_absent_params_stay_absent(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """Entries stored without params load without params."""
        save_registry(saved_registry, registry_file)
        loaded = load_registry(registry_file, results_root=ROOT)

        entry = loaded.get(f"{ROOT}/scratch")
        assert entry.params is None
        assert entry.params_hash == ""

    def test_file_layout(self, saved_registry: PipelineRegistry, registry_file: Path) -> None:
        """The file stores version, status ordinals and GN under its upper-case key."""
        save_registry(saved_registry, registry_file)
        data = json.loads(registry_file.read_text())

        assert data["version"] == REGISTRY_VERSION == "2.0"
        assert set(data) == {"experiments", "results_root", "last_scan", "config", "version"}
        analyzed = data["experiments"][f"{ROOT}/lv4d_GN8_deg4-12_dom0.2_seedrandom_20251009_120000"]
        assert analyzed["status"] == 2
        assert analyzed["params"]["GN"] == 8
        assert analyzed["params"]["seed"] == "random"

    def test_save_leaves_no_temporary_files(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """Saving replaces the file atomically without leftovers."""
        save_registry(saved_registry, registry_file)
        save_registry(saved_registry, registry_file)

        assert [p.name for p in registry_file.parent.iterdir()] == [registry_file.name]

    def test_hash_recomputed_on_load(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """A stale stored hash is replaced by the recomputed one."""
        save_registry(saved_registry, registry_file)
        data = json.loads(registry_file.read_text())
        path = f"{ROOT}/lv4d_GN16_deg4-12_dom0.1_seed42_20251009_153430"
        data["experiments"][path]["params_hash"] = "stale"
        registry_file.write_text(json.dumps(data))

        loaded = load_registry(registry_file, results_root=ROOT)

        assert loaded.get(path).params_hash == "GN16_deg4-12_dom1.000000e-01"

    def test_offset_timestamps_load_naive(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """Stored timestamps with a UTC offset load as naive local times."""
        save_registry(saved_registry, registry_file)
        data = json.loads(registry_file.read_text())
        path = f"{ROOT}/lv4d_GN16_deg4-12_dom0.1_seed42_20251009_153430"
        data["experiments"][path]["completed_at"] = "2025-10-09T15:34:30+00:00"
        data["last_scan"] = "2025-10-09T16:00:00+00:00"
        registry_file.write_text(json.dumps(data))

        loaded = load_registry(registry_file, results_root=ROOT)

        assert loaded.get(path).completed_at.tzinfo is None
        assert loaded.last_scan.tzinfo is None
        assert len(loaded.list_pending()) == 2


class TestLoadFallback:
    """Tests for load_registry on missing or bad files."""

    def test_missing_file_gives_empty_registry(self, registry_file: Path) -> None:
        """A missing file starts a new registry over the given root."""
        loaded = load_registry(registry_file, results_root=ROOT)

        assert len(loaded) == 0
        assert loaded.results_root == ROOT
        assert loaded.last_scan is None

    def test_corrupt_file_gives_empty_registry(self, registry_file: Path) -> None:
        """Malformed JSON yields an empty registry instead of raising."""
        registry_file.parent.mkdir(parents=True)
        registry_file.write_text("{ not json")

        loaded = load_registry(registry_file, results_root=ROOT)

        assert len(loaded) == 0

    def test_version_mismatch_gives_empty_registry(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """A document of another version is not loaded."""
        save_registry(saved_registry, registry_file)
        data = json.loads(registry_file.read_text())
        data["version"] = "1.0"
        registry_file.write_text(json.dumps(data))

        loaded = load_registry(registry_file, results_root=ROOT)

        assert len(loaded) == 0

    def test_invalid_status_gives_empty_registry(
        self, saved_registry: PipelineRegistry, registry_file: Path
    ) -> None:
        """An unknown status ordinal invalidates the document."""
        save_registry(saved_registry, registry_file)
        data = json.loads(registry_file.read_text())
        next(iter(data["experiments"].values()))["status"] = 9
        registry_file.write_text(json.dumps(data))

        assert len(load_registry(registry_file, results_root=ROOT)) == 0

    def test_non_object_document_gives_empty_registry(self, registry_file: Path) -> None:
        """A JSON array is not a registry."""
        registry_file.parent.mkdir(parents=True)
        registry_file.write_text("[]")

        assert len(load_registry(registry_file, results_root=ROOT)) == 0
