"""Analysis collaborators and kind-based dispatch.

``AnalyzerRegistry`` maps an experiment kind (see
``discover_experiment_kind``) to the collaborator that handles it. Kinds
without a registered analyzer go to the fallback, which by default only
logs that detailed analysis was skipped.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from globtim_pipeline.discovery.completion import EXPERIMENT_CONFIG, RESULTS_SUMMARY
from globtim_pipeline.discovery.scanner import KIND_LV4D
from globtim_pipeline.orchestrator.protocol import ExperimentAnalyzer

logger = logging.getLogger(__name__)

ANALYSIS_SUMMARY = ".analysis_summary.json"


class FunctionAnalyzer:
    """Adapts a plain ``func(path) -> None`` to ExperimentAnalyzer."""

    def __init__(self, func: Callable[[Path], Any]) -> None:
        self._func = func

    def analyze(self, experiment_path: Path) -> None:
        self._func(experiment_path)


class NoOpAnalyzer:
    """Fallback for kinds without a dedicated analyzer."""

    def analyze(self, experiment_path: Path) -> None:
        logger.info(f"No analyzer for {experiment_path.name}, skipping detailed analysis")


def _best_finite(records: list[dict[str, Any]], key: str) -> float | None:
    values = []
    for record in records:
        value = record.get(key)
        if isinstance(value, (int, float)) and math.isfinite(value):
            values.append(float(value))
    return min(values) if values else None


class SummaryAnalyzer:
    """Writes ``.analysis_summary.json`` for an experiment.

    Reads ``experiment_config.json`` and ``results_summary.json`` (a list
    of per-degree result records). If either file is missing there is
    nothing to summarize and the experiment still counts as analyzed.
    Malformed files raise, which marks the experiment FAILED.
    """

    def analyze(self, experiment_path: Path) -> None:
        config_path = experiment_path / EXPERIMENT_CONFIG
        summary_path = experiment_path / RESULTS_SUMMARY
        if not config_path.is_file():
            logger.info(f"No config file in {experiment_path.name}")
            return
        if not summary_path.is_file():
            logger.info(f"No results summary in {experiment_path.name}")
            return

        config = json.loads(config_path.read_text(encoding="utf-8"))
        results = json.loads(summary_path.read_text(encoding="utf-8"))
        if not isinstance(results, list):
            raise ValueError(f"Expected a list of results in {summary_path}")

        records = [r for r in results if isinstance(r, dict)]
        successful = [r for r in records if r.get("success") is True]

        summary = {
            "analyzed_at": datetime.now().isoformat(),
            "experiment_path": str(experiment_path),
            "config": config,
            "results_count": len(results),
            "successful_count": len(successful),
            "best_l2_norm": _best_finite(successful, "L2_norm"),
            "best_recovery_error": _best_finite(successful, "recovery_error"),
        }
        (experiment_path / ANALYSIS_SUMMARY).write_text(
            json.dumps(summary, indent=2), encoding="utf-8"
        )
        logger.debug(
            f"{experiment_path.name}: {len(successful)}/{len(results)} degrees successful"
        )


class AnalyzerRegistry:
    """Kind to analyzer dispatch table.

    Example:
        >>> analyzers = AnalyzerRegistry()
        >>> analyzers.register("lv4d", SummaryAnalyzer())
        >>> isinstance(analyzers.get("lv4d"), SummaryAnalyzer)
        True
        >>> isinstance(analyzers.get("deuflhard"), NoOpAnalyzer)
        True
    """

    def __init__(self, fallback: ExperimentAnalyzer | None = None) -> None:
        self._analyzers: dict[str, ExperimentAnalyzer] = {}
        self.fallback: ExperimentAnalyzer = fallback or NoOpAnalyzer()

    def register(self, kind: str, analyzer: ExperimentAnalyzer) -> None:
        """Register (or replace) the analyzer for a kind."""
        self._analyzers[kind] = analyzer

    def get(self, kind: str) -> ExperimentAnalyzer:
        """Analyzer for a kind, or the fallback."""
        return self._analyzers.get(kind, self.fallback)

    def kinds(self) -> list[str]:
        return sorted(self._analyzers)


def default_analyzers() -> AnalyzerRegistry:
    """Dispatch table with the summary analyzer for LV4D experiments."""
    analyzers = AnalyzerRegistry()
    analyzers.register(KIND_LV4D, SummaryAnalyzer())
    return analyzers
