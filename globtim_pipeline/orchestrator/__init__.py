"""Pipeline orchestration.

Components:
    - PipelineOrchestrator: batch analysis and watch mode
    - ExperimentAnalyzer: protocol for analysis collaborators
    - AnalyzerRegistry: kind-based analyzer dispatch
    - OrchestratorObserver / SilentObserver: lifecycle callbacks

Example:
    >>> from globtim_pipeline.orchestrator import PipelineOrchestrator
    >>> orchestrator = PipelineOrchestrator(registry, registry_path)
    >>> orchestrator.watch(interval=60)
"""

from globtim_pipeline.orchestrator.analyzers import (
    ANALYSIS_SUMMARY,
    AnalyzerRegistry,
    FunctionAnalyzer,
    NoOpAnalyzer,
    SummaryAnalyzer,
    default_analyzers,
)
from globtim_pipeline.orchestrator.orchestrator import (
    AnalysisSummary,
    PipelineOrchestrator,
    PipelineStatus,
    WatchIteration,
    pipeline_status,
)
from globtim_pipeline.orchestrator.protocol import (
    ExperimentAnalyzer,
    OrchestratorObserver,
    SilentObserver,
)

__all__ = [
    # Orchestrator
    "AnalysisSummary",
    "PipelineOrchestrator",
    "PipelineStatus",
    "WatchIteration",
    "pipeline_status",
    # Collaborators
    "ANALYSIS_SUMMARY",
    "AnalyzerRegistry",
    "ExperimentAnalyzer",
    "FunctionAnalyzer",
    "NoOpAnalyzer",
    "SummaryAnalyzer",
    "default_analyzers",
    # Observers
    "OrchestratorObserver",
    "SilentObserver",
]
