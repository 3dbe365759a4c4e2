"""Metric aggregation and normalization.

Use explicit imports:
    from ravi.scoring.raw_metrics import RawMetricsAggregator
    from ravi.scoring.traffic_share import TrafficShareAggregator
    from ravi.scoring.citation import CitationAggregator
    from ravi.scoring.normalizer import normalize_and_score, compute_composite_index
"""
