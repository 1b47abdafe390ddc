"""Pipeline orchestration: batch analysis and watch mode.

Every status transition is saved immediately. A crash mid-analysis
leaves the experiment ANALYZING on disk.

An analyzer exception marks that one experiment FAILED and is not
propagated. A failed registry save is logged as a warning and the batch
continues. Status updates on unknown paths do propagate.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from globtim_pipeline.discovery.scanner import (
    DEFAULT_OBJECTIVE_FAMILY,
    discover_experiment_kind,
    scan_for_experiments,
)
from globtim_pipeline.orchestrator.analyzers import AnalyzerRegistry, default_analyzers
from globtim_pipeline.orchestrator.protocol import OrchestratorObserver, SilentObserver
from globtim_pipeline.registry.models import ExperimentEntry, ExperimentStatus
from globtim_pipeline.registry.persistence import save_registry
from globtim_pipeline.registry.store import PipelineRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisSummary:
    """Outcome of one analyze_pending call.

    Attributes:
        analyzed: Entries that reached ANALYZED.
        failed: Entries that reached FAILED.
        total: Pending entries when the batch started, before any limit.
    """

    analyzed: int = 0
    failed: int = 0
    total: int = 0


@dataclass(frozen=True)
class PipelineStatus:
    """Status counts over the whole registry."""

    total: int
    pending: int
    analyzing: int
    analyzed: int
    failed: int
    last_scan: datetime | None
    results_root: str


@dataclass(frozen=True)
class WatchIteration:
    """What one watch-loop iteration did."""

    iteration: int
    new_experiments: int
    summary: AnalysisSummary
    status: PipelineStatus


def pipeline_status(registry: PipelineRegistry) -> PipelineStatus:
    """Summarize a registry's status counts."""
    counts = registry.status_counts()
    return PipelineStatus(
        total=len(registry),
        pending=counts[ExperimentStatus.DISCOVERED],
        analyzing=counts[ExperimentStatus.ANALYZING],
        analyzed=counts[ExperimentStatus.ANALYZED],
        failed=counts[ExperimentStatus.FAILED],
        last_scan=registry.last_scan,
        results_root=registry.results_root,
    )


class PipelineOrchestrator:
    """Drives discovery and analysis over a registry.

    Single-threaded. The only blocking points are filesystem I/O, the
    analyzer call, and the sleep between watch iterations.

    Example:
        >>> registry = load_registry(registry_path, results_root)
        >>> orchestrator = PipelineOrchestrator(registry, registry_path)
        >>> orchestrator.scan()
        3
        >>> orchestrator.analyze_pending()
        AnalysisSummary(analyzed=3, failed=0, total=3)
    """

    def __init__(
        self,
        registry: PipelineRegistry,
        registry_path: str | Path | None,
        analyzers: AnalyzerRegistry | None = None,
        objective_family: str = DEFAULT_OBJECTIVE_FAMILY,
        observer: OrchestratorObserver | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            registry: Registry to drive.
            registry_path: File saved at every checkpoint, or None to keep
                the registry in memory only.
            analyzers: Kind dispatch table, defaults to default_analyzers().
            objective_family: Family subdirectory scans search first.
            observer: Lifecycle callbacks, defaults to SilentObserver.
        """
        self.registry = registry
        self.registry_path = Path(registry_path) if registry_path is not None else None
        self.analyzers = analyzers if analyzers is not None else default_analyzers()
        self.objective_family = objective_family
        self.observer: OrchestratorObserver = observer or SilentObserver()

    def checkpoint(self) -> bool:
        """Save the registry, if a registry path was given.

        A failed save is logged and does not stop the caller; the next
        checkpoint writes the full registry again.

        Returns:
            False if the save failed, True otherwise.
        """
        if self.registry_path is None:
            return True
        try:
            save_registry(self.registry, self.registry_path)
        except OSError as e:
            logger.warning(f"Failed to save registry {self.registry_path}: {e}")
            return False
        return True

    def _transition(self, path: str, status: ExperimentStatus) -> ExperimentEntry:
        entry = self.registry.update_status(path, status)
        self.checkpoint()
        return entry

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def scan(self) -> int:
        """Scan for new experiments and save.

        Returns:
            Number of new entries.
        """
        new_count = scan_for_experiments(self.registry, self.objective_family)
        self.checkpoint()
        self.observer.on_scan_complete(new_count)
        return new_count

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    def analyze_one(self, entry: ExperimentEntry, index: int = 1, total: int = 1) -> bool:
        """Analyze a single experiment.

        Moves the entry to ANALYZING (saved), runs the analyzer for its
        kind, then moves it to ANALYZED or FAILED (saved).

        Args:
            entry: Registered entry to analyze.
            index: Position in the current batch, for observers.
            total: Batch size, for observers.

        Returns:
            True if the analyzer succeeded.

        Raises:
            ExperimentNotFoundError: If the entry is not in the registry.
        """
        self.observer.on_analysis_start(entry, index, total)
        self._transition(entry.path, ExperimentStatus.ANALYZING)

        try:
            kind = discover_experiment_kind(entry.path)
            self.analyzers.get(kind).analyze(Path(entry.path))
        except Exception as e:
            logger.warning(f"Analysis failed for {entry.name}: {e}")
            failed = self._transition(entry.path, ExperimentStatus.FAILED)
            self.observer.on_analysis_failed(failed, e)
            return False

        analyzed = self._transition(entry.path, ExperimentStatus.ANALYZED)
        logger.info(f"Analysis complete: {entry.name}")
        self.observer.on_analysis_complete(analyzed)
        return True

    def analyze_pending(self, limit: int | None = None) -> AnalysisSummary:
        """Analyze pending experiments, oldest first.

        The pending list is captured once; ``total`` is its length before
        ``limit`` is applied. One failure never stops the batch.

        Args:
            limit: Maximum number of entries to analyze.

        Returns:
            AnalysisSummary with analyzed, failed and total counts.
        """
        pending = self.registry.list_pending()
        total = len(pending)
        if limit is not None:
            pending = pending[: max(limit, 0)]

        analyzed = 0
        failed = 0
        for i, entry in enumerate(pending, start=1):
            if self.analyze_one(entry, i, len(pending)):
                analyzed += 1
            else:
                failed += 1

        summary = AnalysisSummary(analyzed=analyzed, failed=failed, total=total)
        self.observer.on_batch_complete(summary)
        return summary

    # -------------------------------------------------------------------------
    # Watch mode
    # -------------------------------------------------------------------------

    def run_iteration(self, iteration: int = 1, limit: int | None = None) -> WatchIteration:
        """One watch step: scan, save, analyze pending."""
        new_count = self.scan()
        summary = self.analyze_pending(limit)
        return WatchIteration(
            iteration=iteration,
            new_experiments=new_count,
            summary=summary,
            status=pipeline_status(self.registry),
        )

    def watch(
        self,
        interval: float,
        max_iterations: int | None = None,
        stop_event: threading.Event | None = None,
        on_iteration: Callable[[WatchIteration], None] | None = None,
        limit: int | None = None,
    ) -> int:
        """Repeatedly scan and analyze until stopped.

        The stop event is checked before each iteration and ends the
        sleep between iterations early. A KeyboardInterrupt also stops
        the loop cleanly; every step has already been saved.

        Args:
            interval: Seconds to sleep between iterations.
            max_iterations: Stop after this many iterations (None = no limit).
            stop_event: External stop signal.
            on_iteration: Called after each completed iteration.
            limit: Per-iteration cap on analyzed entries.

        Returns:
            Number of completed iterations.
        """
        stop = stop_event if stop_event is not None else threading.Event()
        completed = 0
        try:
            while not stop.is_set():
                if max_iterations is not None and completed >= max_iterations:
                    break
                result = self.run_iteration(completed + 1, limit)
                completed += 1
                if on_iteration is not None:
                    on_iteration(result)
                if max_iterations is not None and completed >= max_iterations:
                    break
                if stop.wait(interval):
                    break
        except KeyboardInterrupt:
            logger.info("Watch mode interrupted")
        logger.info(f"Watch mode stopped after {completed} iterations")
        return completed
