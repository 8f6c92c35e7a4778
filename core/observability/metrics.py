"""
Metrics Collection for the Accruals Service

Collects and exposes in-memory metrics for:
- Campaign onboarding (created, failed)
- Webhook deliveries (accepted, rejected)
- Bill events (recoded, ignored by reason, failed)
- Variance journals (posted by direction)
- Processing times per stage (average, p95)
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class CampaignMetrics:
    created: int = 0
    failed: int = 0


@dataclass
class WebhookMetrics:
    accepted: int = 0
    rejected: int = 0
    events_recoded: int = 0
    events_failed: int = 0
    events_ignored: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class VarianceMetrics:
    posted: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    zero: int = 0


@dataclass
class TimingMetrics:
    """Processing time samples by stage (last N kept)."""
    max_samples: int = 1000
    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))
    
    def add_sample(self, stage: str, duration_ms: float):
        samples = self.by_stage[stage]
        samples.append(duration_ms)
        if len(samples) > self.max_samples:
            self.by_stage[stage] = samples[-self.max_samples:]
    
    def get_average(self, stage: str) -> float:
        samples = self.by_stage.get(stage, [])
        return statistics.mean(samples) if samples else 0.0
    
    def get_p95(self, stage: str) -> float:
        samples = self.by_stage.get(stage, [])
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector.
    
    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_campaign_created()
        metrics.record_processing_time("reconcile_bill", 120.0)
    """
    
    _instance: Optional["MetricsCollector"] = None
    _instance_lock = Lock()
    
    def __init__(self):
        self.campaigns = CampaignMetrics()
        self.webhooks = WebhookMetrics()
        self.variances = VarianceMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()
    
    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance
    
    def record_campaign_created(self):
        with self._lock:
            self.campaigns.created += 1
    
    def record_campaign_failed(self):
        with self._lock:
            self.campaigns.failed += 1
    
    def record_webhook_accepted(self):
        with self._lock:
            self.webhooks.accepted += 1
    
    def record_webhook_rejected(self):
        with self._lock:
            self.webhooks.rejected += 1
    
    def record_event_recoded(self):
        with self._lock:
            self.webhooks.events_recoded += 1
    
    def record_event_ignored(self, reason: str):
        with self._lock:
            self.webhooks.events_ignored[reason] += 1
    
    def record_event_failed(self):
        with self._lock:
            self.webhooks.events_failed += 1
    
    def record_variance(self, direction: str):
        """Record a variance outcome: "additional", "release" or "zero"."""
        with self._lock:
            if direction == "zero":
                self.variances.zero += 1
            else:
                self.variances.posted[direction] += 1
    
    def record_processing_time(self, stage: str, duration_ms: float):
        with self._lock:
            self.timings.add_sample(stage, duration_ms)
    
    def get_timing_stats(self, stage: str) -> Dict[str, float]:
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, [])),
            }
    
    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "campaigns": {
                    "created": self.campaigns.created,
                    "failed": self.campaigns.failed,
                },
                "webhooks": {
                    "accepted": self.webhooks.accepted,
                    "rejected": self.webhooks.rejected,
                    "events_recoded": self.webhooks.events_recoded,
                    "events_failed": self.webhooks.events_failed,
                    "events_ignored": dict(self.webhooks.events_ignored),
                },
                "variances": {
                    "posted": dict(self.variances.posted),
                    "zero": self.variances.zero,
                },
                "timings": {
                    stage: {
                        "average_ms": self.timings.get_average(stage),
                        "p95_ms": self.timings.get_p95(stage),
                    }
                    for stage in self.timings.by_stage.keys()
                },
            }


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()
