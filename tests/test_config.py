"""Tests for configuration loading and path resolution."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from globtim_pipeline.config import (
    PipelineConfig,
    default_registry_path,
    default_results_root,
    load_config,
    resolve_paths,
)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Valid configuration file."""
    data = {
        "results_root": str(tmp_path / "results"),
        "objective_family": "deuflhard",
        "watch_interval": 5,
        "analyze_limit": 10,
        "coverage": {
            "gn_values": [8, 16],
            "domains": [0.1, 0.2],
            "degree_ranges": [[4, 12]],
        },
    }
    path = tmp_path / "pipeline.yaml"
    path.write_text(yaml.dump(data))
    return path


class TestLoadConfig:
    """Tests for load_config."""

    def test_valid_config(self, config_file: Path, tmp_path: Path) -> None:
        """All fields are loaded and validated."""
        config = load_config(config_file)

        assert config.results_root == tmp_path / "results"
        assert config.registry_path is None
        assert config.objective_family == "deuflhard"
        assert config.watch_interval == 5.0
        assert config.analyze_limit == 10
        assert config.coverage.degree_ranges == [(4, 12)]

    def test_defaults(self) -> None:
        """An empty model uses built-in defaults."""
        config = PipelineConfig()

        assert config.objective_family == "lotka_volterra_4d"
        assert config.watch_interval == 60.0
        assert config.analyze_limit is None
        assert config.coverage.gn_values == []

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        """An empty file raises ValueError."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ValueError, match="Empty"):
            load_config(path)

    @pytest.mark.parametrize(
        "data",
        [
            {"watch_interval": 0},
            {"analyze_limit": -1},
            {"coverage": {"domains": [0.0]}},
            {"coverage": {"degree_ranges": [[12, 4]]}},
        ],
    )
    def test_invalid_values(self, tmp_path: Path, data: dict) -> None:
        """Out-of-range values raise ValueError."""
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump(data))

        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path)


class TestDefaultPaths:
    """Tests for default path discovery."""

    def test_results_root_from_environment(self, tmp_path: Path) -> None:
        """The environment variable wins over directory search."""
        env = {"GLOBTIM_RESULTS_ROOT": "/from/env"}

        assert default_results_root(env, tmp_path, tmp_path) == Path("/from/env")

    def test_results_root_found_in_parent(self, tmp_path: Path) -> None:
        """A globtim_results directory in a parent of cwd is found."""
        (tmp_path / "globtim_results").mkdir()
        cwd = tmp_path / "a" / "b"
        cwd.mkdir(parents=True)

        assert default_results_root({}, cwd, tmp_path / "home") == tmp_path / "globtim_results"

    def test_results_root_home_fallback(self, tmp_path: Path) -> None:
        """Without env or nearby directory, the home location is used."""
        cwd = tmp_path / "work"
        cwd.mkdir()
        home = tmp_path / "home"

        assert default_results_root({}, cwd, home) == home / "globtim_results"

    def test_registry_path(self, tmp_path: Path) -> None:
        """Registry defaults to ~/.globtim unless the environment overrides it."""
        assert default_registry_path({}, tmp_path) == tmp_path / ".globtim" / "pipeline_registry.json"
        env = {"GLOBTIM_REGISTRY_PATH": "/x/reg.json"}
        assert default_registry_path(env, tmp_path) == Path("/x/reg.json")


class TestResolvePaths:
    """Tests for resolve_paths precedence."""

    def test_explicit_beats_config_beats_environment(self, tmp_path: Path) -> None:
        """CLI values win, then config values, then environment."""
        env = {"GLOBTIM_RESULTS_ROOT": "/env/results", "GLOBTIM_REGISTRY_PATH": "/env/reg.json"}
        config = PipelineConfig(results_root=Path("/cfg/results"))

        paths = resolve_paths(config, env, tmp_path, tmp_path)
        assert paths.results_root == Path("/cfg/results")
        assert paths.registry_path == Path("/env/reg.json")

        paths = resolve_paths(
            config, env, tmp_path, tmp_path, registry_path=Path("/cli/reg.json")
        )
        assert paths.registry_path == Path("/cli/reg.json")
