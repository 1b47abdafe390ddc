"""Protocols for analysis collaborators and orchestrator observers.

The orchestrator does not analyze anything itself. It routes each
experiment to an ExperimentAnalyzer chosen by kind, and reports
lifecycle events to an OrchestratorObserver.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from globtim_pipeline.orchestrator.orchestrator import AnalysisSummary
    from globtim_pipeline.registry.models import ExperimentEntry


@runtime_checkable
class ExperimentAnalyzer(Protocol):
    """Protocol for analysis collaborators.

    An analyzer reads an experiment directory and may write
    experiment-local summary artifacts. Raising any exception marks the
    experiment FAILED; returning normally marks it ANALYZED.

    Example:
        >>> class MyAnalyzer:
        ...     def analyze(self, experiment_path: Path) -> None:
        ...         (experiment_path / "summary.txt").write_text("ok")
        >>> isinstance(MyAnalyzer(), ExperimentAnalyzer)
        True
    """

    def analyze(self, experiment_path: Path) -> None:
        """Analyze one experiment directory.

        Args:
            experiment_path: Experiment directory.
        """
        ...


@runtime_checkable
class OrchestratorObserver(Protocol):
    """Callbacks for orchestrator lifecycle events.

    Implementations can render to console, log to file, etc.
    """

    def on_scan_complete(self, new_count: int) -> None:
        """Called after a scan, with the number of new entries."""
        ...

    def on_analysis_start(self, entry: ExperimentEntry, index: int, total: int) -> None:
        """Called before analyzing an entry.

        Args:
            entry: Entry about to be analyzed.
            index: 1-based position in the current batch (1 for single runs).
            total: Batch size (1 for single runs).
        """
        ...

    def on_analysis_complete(self, entry: ExperimentEntry) -> None:
        """Called after an entry reached ANALYZED."""
        ...

    def on_analysis_failed(self, entry: ExperimentEntry, error: Exception) -> None:
        """Called after an entry reached FAILED."""
        ...

    def on_batch_complete(self, summary: AnalysisSummary) -> None:
        """Called when analyze_pending finishes."""
        ...


class SilentObserver:
    """Observer that ignores every event. Default for the orchestrator."""

    def on_scan_complete(self, new_count: int) -> None:
        pass

    def on_analysis_start(self, entry: ExperimentEntry, index: int, total: int) -> None:
        pass

    def on_analysis_complete(self, entry: ExperimentEntry) -> None:
        pass

    def on_analysis_failed(self, entry: ExperimentEntry, error: Exception) -> None:
        pass

    def on_batch_complete(self, summary: AnalysisSummary) -> None:
        pass
