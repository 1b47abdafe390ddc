"""Tests for the indexed in-memory registry."""

from __future__ import annotations

from datetime import datetime

import pytest

from globtim_pipeline.registry import (
    ExperimentNotFoundError,
    ExperimentParams,
    ExperimentStatus,
    PipelineRegistry,
    build_indices,
    round_domain,
)

ROOT = "/data/globtim_results"


def _add(registry: PipelineRegistry, name: str, **kwargs) -> str:
    path = f"{ROOT}/{name}"
    registry.add_experiment(path, name, **kwargs)
    return path


def _assert_indices_consistent(registry: PipelineRegistry) -> None:
    expected = build_indices(registry.entries)
    assert dict(registry.by_hash) == expected.by_hash
    assert dict(registry.by_gn) == expected.by_gn
    assert dict(registry.by_domain) == expected.by_domain


@pytest.fixture
def populated() -> PipelineRegistry:
    """Registry with five entries over two GN values, plus one unparseable name."""
    registry = PipelineRegistry(results_root=ROOT)
    _add(registry, "lv4d_GN8_deg4-12_dom0.1_seed1_20251001_100000")
    _add(registry, "lv4d_GN8_deg4-12_dom0.1_seed2_20251001_110000")
    _add(registry, "lv4d_GN8_deg4-10_dom0.2_20251002_100000")
    _add(registry, "lv4d_GN16_deg4-12_dom0.1_20251003_100000")
    _add(registry, "lv4d_GN16_deg4-12_dom1.000000e-02_20251004_100000")
    _add(registry, "scratch_run")
    return registry


# ==============================================================================
# Mutations
# ==============================================================================


class TestAddExperiment:
    """Tests for add_experiment and remove_experiment."""

    def test_add_extracts_params(self) -> None:
        """Params are extracted from the name when not given."""
        registry = PipelineRegistry(results_root=ROOT)
        path = _add(registry, "lv4d_GN8_deg4-12_dom0.2_20251009_153430")

        entry = registry.get(path)
        assert entry.status is ExperimentStatus.DISCOVERED
        assert entry.params is not None
        assert entry.params_hash == "GN8_deg4-12_dom2.000000e-01"
        assert registry.by_hash[entry.params_hash] == {path}
        assert registry.by_gn[8] == {path}
        assert registry.by_domain[0.2] == {path}

    def test_unparseable_name_not_indexed(self) -> None:
        """Entries without params appear in no index."""
        registry = PipelineRegistry(results_root=ROOT)
        path = _add(registry, "scratch_run")

        assert registry.get(path).params is None
        assert registry.get(path).params_hash == ""
        assert not registry.by_hash
        assert not registry.by_gn
        assert not registry.by_domain

    def test_explicit_params_override_name(self) -> None:
        """Given params win over the directory name."""
        registry = PipelineRegistry(results_root=ROOT)
        params = ExperimentParams(gn=32, deg_min=2, deg_max=6, domain=0.5)
        path = _add(registry, "scratch_run", params=params)

        assert registry.get(path).params == params
        assert registry.has_experiment_with_params(32, 2, 6, 0.5)

    def test_re_add_replaces_and_reindexes(self) -> None:
        """Adding an existing path replaces the entry and its index memberships."""
        registry = PipelineRegistry(results_root=ROOT)
        path = f"{ROOT}/run"
        registry.add_experiment(path, "run", params=ExperimentParams(8, 4, 12, 0.1))
        registry.update_status(path, ExperimentStatus.FAILED)

        registry.add_experiment(path, "run", params=ExperimentParams(16, 4, 12, 0.2))

        assert len(registry) == 1
        assert registry.get(path).status is ExperimentStatus.DISCOVERED
        assert 8 not in registry.by_gn
        assert registry.by_gn[16] == {path}
        _assert_indices_consistent(registry)

    def test_remove_drops_empty_keys(self, populated: PipelineRegistry) -> None:
        """Removing the last member of a key removes the key."""
        path = f"{ROOT}/lv4d_GN8_deg4-10_dom0.2_20251002_100000"

        removed = populated.remove_experiment(path)

        assert removed.name.endswith("20251002_100000")
        assert path not in populated
        assert 0.2 not in populated.by_domain
        _assert_indices_consistent(populated)

    def test_remove_unknown_raises(self, populated: PipelineRegistry) -> None:
        """Removing an unregistered path raises ExperimentNotFoundError."""
        with pytest.raises(ExperimentNotFoundError):
            populated.remove_experiment("/nowhere")

    def test_indices_match_rebuild(self, populated: PipelineRegistry) -> None:
        """Incremental indices equal indices rebuilt from entries."""
        _assert_indices_consistent(populated)
        populated.rebuild_indices()
        _assert_indices_consistent(populated)


class TestUpdateStatus:
    """Tests for update_status and requeue."""

    def test_update_status(self, populated: PipelineRegistry) -> None:
        """Status changes are visible through get()."""
        path = f"{ROOT}/scratch_run"
        populated.update_status(path, ExperimentStatus.ANALYZED, datetime(2025, 10, 10))

        entry = populated.get(path)
        assert entry.status is ExperimentStatus.ANALYZED
        assert entry.analyzed_at == datetime(2025, 10, 10)

    def test_unknown_path_leaves_registry_unchanged(self, populated: PipelineRegistry) -> None:
        """An unknown path raises and mutates nothing."""
        before = dict(populated.entries)

        with pytest.raises(ExperimentNotFoundError) as exc_info:
            populated.update_status("/nowhere", ExperimentStatus.ANALYZED)

        assert exc_info.value.path == "/nowhere"
        assert isinstance(exc_info.value, KeyError)
        assert dict(populated.entries) == before

    def test_requeue_failed(self, populated: PipelineRegistry) -> None:
        """Failed entries go back to DISCOVERED; ANALYZING ones stay by default."""
        failed = f"{ROOT}/scratch_run"
        stuck = f"{ROOT}/lv4d_GN8_deg4-10_dom0.2_20251002_100000"
        populated.update_status(failed, ExperimentStatus.FAILED)
        populated.update_status(stuck, ExperimentStatus.ANALYZING)

        assert populated.requeue() == 1
        assert populated.get(failed).status is ExperimentStatus.DISCOVERED
        assert populated.get(stuck).status is ExperimentStatus.ANALYZING

    def test_requeue_including_analyzing(self, populated: PipelineRegistry) -> None:
        """include_analyzing also recovers entries left ANALYZING."""
        stuck = f"{ROOT}/lv4d_GN8_deg4-10_dom0.2_20251002_100000"
        populated.update_status(stuck, ExperimentStatus.ANALYZING)

        assert populated.requeue(include_analyzing=True) == 1
        assert populated.get(stuck).status is ExperimentStatus.DISCOVERED

    def test_requeue_explicit_paths(self, populated: PipelineRegistry) -> None:
        """Only the given paths are considered."""
        a = f"{ROOT}/scratch_run"
        b = f"{ROOT}/lv4d_GN8_deg4-10_dom0.2_20251002_100000"
        populated.update_status(a, ExperimentStatus.FAILED)
        populated.update_status(b, ExperimentStatus.FAILED)

        assert populated.requeue([a]) == 1
        assert populated.get(b).status is ExperimentStatus.FAILED


# ==============================================================================
# Queries
# ==============================================================================


class TestQueries:
    """Tests for parameter and status queries."""

    def test_exact_params_returns_all_seeds(self, populated: PipelineRegistry) -> None:
        """Runs in the same cell with different seeds are all returned."""
        entries = populated.get_by_exact_params(8, 4, 12, 0.1)

        assert [e.params.seed for e in entries] == [1, 2]
        assert populated.has_experiment_with_params(8, 4, 12, 0.1)
        assert not populated.has_experiment_with_params(8, 4, 12, 0.3)

    def test_exact_params_matches_linear_scan(self, populated: PipelineRegistry) -> None:
        """Hash lookups agree with a scan over entries, including after a re-add."""
        moved = f"{ROOT}/lv4d_GN8_deg4-12_dom0.1_seed2_20251001_110000"
        populated.add_experiment(
            moved, "moved", params=ExperimentParams(gn=16, deg_min=4, deg_max=12, domain=0.1)
        )
        _add(populated, "lv4d_GN8_deg4-12_dom0.1_seed3_20251005_100000")

        cells = [
            (8, 4, 12, 0.1),
            (8, 4, 10, 0.2),
            (16, 4, 12, 0.1),
            (16, 4, 12, 0.01),
            (32, 4, 12, 0.1),
        ]
        for gn, deg_min, deg_max, domain in cells:
            scanned = sorted(
                (
                    e
                    for e in populated.entries.values()
                    if e.params is not None
                    and e.params.gn == gn
                    and e.params.deg_min == deg_min
                    and e.params.deg_max == deg_max
                    and round_domain(e.params.domain) == round_domain(domain)
                ),
                key=lambda e: e.path,
            )
            assert populated.get_by_exact_params(gn, deg_min, deg_max, domain) == scanned

        assert [e.params.seed for e in populated.get_by_exact_params(8, 4, 12, 0.1)] == [1, 3]
        assert len(populated.get_by_exact_params(16, 4, 12, 0.1)) == 2

    def test_filter_by_gn(self, populated: PipelineRegistry) -> None:
        """GN filter returns only that GN, sorted by path."""
        entries = populated.get_by_filter(gn=16)

        assert len(entries) == 2
        assert all(e.params.gn == 16 for e in entries)
        assert [e.path for e in entries] == sorted(e.path for e in entries)

    def test_filter_domain_tolerance(self, populated: PipelineRegistry) -> None:
        """Domain equality uses a relative tolerance."""
        assert len(populated.get_by_filter(domain=0.1 * (1 + 1e-9))) == 3
        assert populated.get_by_filter(domain=0.1001) == []

    def test_filter_domain_range(self, populated: PipelineRegistry) -> None:
        """Domain range bounds are inclusive."""
        entries = populated.get_by_filter(domain_range=(0.01, 0.1))

        assert {e.params.domain for e in entries} == {0.01, 0.1}
        assert len(entries) == 4

    def test_filter_combined(self, populated: PipelineRegistry) -> None:
        """All criteria must hold."""
        entries = populated.get_by_filter(gn=8, deg_max=10)

        assert len(entries) == 1
        assert entries[0].params.domain == pytest.approx(0.2)

    def test_filter_without_criteria_skips_unparsed(self, populated: PipelineRegistry) -> None:
        """Entries without params never match a filter."""
        assert len(populated.get_by_filter()) == 5

    def test_unique_params_counts_runs(self, populated: PipelineRegistry) -> None:
        """Each parameter cell is listed once with its run count."""
        rows = populated.unique_params()

        assert len(rows) == 4
        first = rows[0]
        assert (first.gn, first.domain, first.deg_min, first.deg_max) == (8, 0.1, 4, 12)
        assert first.count == 2

    def test_list_pending_oldest_first(self) -> None:
        """Pending entries are ordered by completion time, else discovery time."""
        registry = PipelineRegistry(results_root=ROOT)
        late = _add(registry, "late", completed_at=datetime(2025, 3, 1))
        early = _add(registry, "early", completed_at=datetime(2025, 1, 1))
        undated = _add(registry, "undated", discovered_at=datetime(2025, 2, 1))
        done = _add(registry, "done", completed_at=datetime(2024, 1, 1))
        registry.update_status(done, ExperimentStatus.ANALYZED)

        assert [e.path for e in registry.list_pending()] == [early, undated, late]
        assert [e.path for e in registry.list_analyzed()] == [done]

    def test_status_counts_include_zero(self, populated: PipelineRegistry) -> None:
        """Every status is present in the counts."""
        counts = populated.status_counts()

        assert counts == {
            ExperimentStatus.DISCOVERED: 6,
            ExperimentStatus.ANALYZING: 0,
            ExperimentStatus.ANALYZED: 0,
            ExperimentStatus.FAILED: 0,
        }

    def test_summary(self, populated: PipelineRegistry) -> None:
        """The summary names entry and index sizes."""
        text = str(populated)

        assert text.startswith("PipelineRegistry(6 experiments [6 discovered]")
        assert "4 param combinations" in text
        assert "2 GN values" in text
        assert "3 domains" in text
