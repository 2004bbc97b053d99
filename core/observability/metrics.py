"""
Metrics Collection for Order Scrub

Collects and exposes metrics for:
- Scrub runs (started, completed, failed)
- Match outcomes per MatchType
- Activity execution (started, completed, failed)
- Processing times per stage (average, p95)

Metrics are kept in-memory for the lifetime of the process and exposed
through the /metrics endpoint.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class ScrubRunMetrics:
    """Metrics for scrub runs."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0
    
    # Failures by reason ("parse", "normalization", "unexpected")
    failures_by_reason: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class OutcomeMetrics:
    """Cumulative match outcomes across all completed scrubs."""
    orders: int = 0
    by_match_type: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class ActivityMetrics:
    """Metrics for activity execution."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    
    by_name: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0, "failed": 0}))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    # Raw timing samples (keep last N for percentile calculations)
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000
    
    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))
    
    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]
        
        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]
    
    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0
    
    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for order scrubs.
    
    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_scrub_started()
        metrics.record_scrub_completed({"PerfectMatch": 3, "Critical": 1}, duration_ms=120.5)
    """
    
    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()
    
    def __init__(self):
        self.scrubs = ScrubRunMetrics()
        self.outcomes = OutcomeMetrics()
        self.activities = ActivityMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()
    
    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance
    
    @classmethod
    def reset(cls):
        """Drop the singleton; the next instance() starts from zero."""
        with cls._lock:
            cls._instance = None
    
    # =========================================================================
    # Scrub Metrics
    # =========================================================================
    
    def record_scrub_started(self):
        with self._lock:
            self.scrubs.started += 1
            self.scrubs.in_progress += 1
    
    def record_scrub_completed(self, match_type_counts: Dict[str, int], duration_ms: float = None):
        """Record a completed scrub and its per-MatchType counts."""
        with self._lock:
            self.scrubs.completed += 1
            self.scrubs.in_progress = max(0, self.scrubs.in_progress - 1)
            for match_type, count in match_type_counts.items():
                self.outcomes.by_match_type[match_type] += count
                self.outcomes.orders += count
            
            if duration_ms:
                self.timings.add_sample(duration_ms, "scrub")
    
    def record_scrub_failed(self, reason: str):
        with self._lock:
            self.scrubs.failed += 1
            self.scrubs.in_progress = max(0, self.scrubs.in_progress - 1)
            self.scrubs.failures_by_reason[reason] += 1
    
    # =========================================================================
    # Activity Metrics
    # =========================================================================
    
    def record_activity_started(self, activity_name: str):
        """Record an activity start."""
        with self._lock:
            self.activities.started += 1
            self.activities.by_name[activity_name]["started"] += 1
    
    def record_activity_completed(self, activity_name: str, duration_ms: float = None):
        """Record an activity completion."""
        with self._lock:
            self.activities.completed += 1
            self.activities.by_name[activity_name]["completed"] += 1
            
            if duration_ms:
                self.timings.add_sample(duration_ms, f"activity.{activity_name}")
    
    def record_activity_failed(self, activity_name: str):
        """Record an activity failure."""
        with self._lock:
            self.activities.failed += 1
            self.activities.by_name[activity_name]["failed"] += 1
    
    # =========================================================================
    # Timing Metrics
    # =========================================================================
    
    def record_processing_time(self, stage: str, duration_ms: float):
        """Record a processing time sample."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)
    
    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }
    
    # =========================================================================
    # Summary
    # =========================================================================
    
    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "scrubs": {
                    "started": self.scrubs.started,
                    "completed": self.scrubs.completed,
                    "failed": self.scrubs.failed,
                    "in_progress": self.scrubs.in_progress,
                    "failures_by_reason": dict(self.scrubs.failures_by_reason),
                },
                "outcomes": {
                    "orders": self.outcomes.orders,
                    "by_match_type": dict(self.outcomes.by_match_type),
                },
                "activities": {
                    "started": self.activities.started,
                    "completed": self.activities.completed,
                    "failed": self.activities.failed,
                    "by_name": {k: dict(v) for k, v in self.activities.by_name.items()},
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_scrub_started():
    get_metrics().record_scrub_started()


def record_scrub_completed(match_type_counts: Dict[str, int], duration_ms: float = None):
    get_metrics().record_scrub_completed(match_type_counts, duration_ms)


def record_scrub_failed(reason: str):
    get_metrics().record_scrub_failed(reason)


def record_activity_started(activity_name: str):
    """Record an activity start."""
    get_metrics().record_activity_started(activity_name)


def record_activity_completed(activity_name: str, duration_ms: float = None):
    """Record an activity completion."""
    get_metrics().record_activity_completed(activity_name, duration_ms)


def record_activity_failed(activity_name: str):
    get_metrics().record_activity_failed(activity_name)


def record_processing_time(stage: str, duration_ms: float):
    """Record a processing time sample."""
    get_metrics().record_processing_time(stage, duration_ms)
