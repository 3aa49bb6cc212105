"""
Benchmark drivers.
"""

from .base import BenchmarkConfig, BenchmarkDriver, BenchmarkResult, parse_ratios
from .fixed_count import FixedCountBenchmark
from .mixed import MixedBenchmark, delete_index_ready, reader_index

__all__ = ['BenchmarkConfig', 'BenchmarkDriver', 'BenchmarkResult', 'parse_ratios',
           'FixedCountBenchmark', 'MixedBenchmark', 'delete_index_ready', 'reader_index']
