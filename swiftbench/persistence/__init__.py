"""
Timing and throughput persistence for benchmark runs.
"""

from .record import ThroughputSample, TimingRecord
from .csv_sink import ThroughputSink, TimingSink
from .metrics import calculate_latency_stats, summarize_timing_csv

__all__ = ['ThroughputSample', 'TimingRecord', 'ThroughputSink', 'TimingSink',
           'calculate_latency_stats', 'summarize_timing_csv']
