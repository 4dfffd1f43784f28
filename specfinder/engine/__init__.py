"""Engine Layer - Core Orchestration and Pipeline Management

This module provides the core engine layer, implementing:
- PipelineOrchestrator: Main entry point for product/batch searches
- DomainPolicy: Trusted/excluded domain snapshot
- ExtractionAdapter: Per-source candidate extraction
- reconcile: Cross-source consensus and confidence
- Audit sinks: Best-effort fetch monitoring
- Result types: Standardized pipeline values
"""

from .audit import (
    AuditSink,
    DatabaseAuditSink,
    FetchAuditEvent,
    LoggingAuditSink,
    NullAuditSink,
    build_audit_sink,
    emit_best_effort,
)
from .domain_policy import UNRANKED, DomainPolicy, load_domain_policy
from .extraction import ExtractionAdapter, ExtractionService
from .orchestrator import BatchRun, PipelineConfig, PipelineOrchestrator
from .reconciliation import META_SOURCES_KEY, build_meta_entry, confidence_for, reconcile
from .result import (
    Candidate,
    DomainEntry,
    DomainKind,
    ProductHint,
    ProductRequest,
    ProductResult,
    ProductState,
    PropertyDefinition,
    PropertyResult,
    SearchResponse,
    SearchStatus,
    SourceRef,
)
from .timer import PipelineTimer

__all__ = [
    "PipelineOrchestrator",
    "PipelineConfig",
    "BatchRun",
    "PipelineTimer",
    "DomainPolicy",
    "UNRANKED",
    "load_domain_policy",
    "ExtractionAdapter",
    "ExtractionService",
    "reconcile",
    "confidence_for",
    "build_meta_entry",
    "META_SOURCES_KEY",
    # Audit
    "AuditSink",
    "FetchAuditEvent",
    "NullAuditSink",
    "LoggingAuditSink",
    "DatabaseAuditSink",
    "build_audit_sink",
    "emit_best_effort",
    # Results
    "Candidate",
    "DomainEntry",
    "DomainKind",
    "ProductHint",
    "ProductRequest",
    "ProductResult",
    "ProductState",
    "PropertyDefinition",
    "PropertyResult",
    "SearchResponse",
    "SearchStatus",
    "SourceRef",
]
