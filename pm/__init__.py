"""
Aggregation outputs — per-ratio tallies, sampling error, and decision support.
"""

from .aggregator import AggregateStatistics, RatioTally, finalize, merge_tallies
from .metrics import confidence_reached, probability_interval, stop_at_confidence
from .decisions import break_even_ratio, generate_decision_summary

__all__ = [
    "AggregateStatistics",
    "RatioTally",
    "finalize",
    "merge_tallies",
    "confidence_reached",
    "probability_interval",
    "stop_at_confidence",
    "break_even_ratio",
    "generate_decision_summary",
]
