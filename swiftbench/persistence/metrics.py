"""
Latency statistics computed from a timing CSV.
"""

import logging
from typing import Dict

import pandas as pd

from swiftbench.configuration import NANOSECONDS_PER_SECOND

logger = logging.getLogger(__name__)

NANOSECONDS_PER_MILLISECOND = NANOSECONDS_PER_SECOND // 1000


def calculate_latency_stats(data: pd.DataFrame, latency_col: str = 'elapsed_nanoseconds') -> Dict[str, float]:
    """
    Calculate latency statistics (mean and percentiles) from timing records.

    Only 2xx records are counted.

    Args:
        data: DataFrame of timing records (must have a status column)
        latency_col: Column holding nanosecond latencies

    Returns:
        Dictionary with count, avg, p50, p95, p99 latency in milliseconds
    """
    if len(data) == 0 or latency_col not in data.columns or 'status' not in data.columns:
        return {'count': 0, 'avg': 0.0, 'p50': 0.0, 'p95': 0.0, 'p99': 0.0}

    successful = data[data['status'] // 100 == 2]
    if len(successful) == 0:
        return {'count': 0, 'avg': 0.0, 'p50': 0.0, 'p95': 0.0, 'p99': 0.0}

    latencies = successful[latency_col] / NANOSECONDS_PER_MILLISECOND
    return {
        'count': int(len(latencies)),
        'avg': float(latencies.mean()),
        'p50': float(latencies.quantile(0.5)),
        'p95': float(latencies.quantile(0.95)),
        'p99': float(latencies.quantile(0.99)),
    }


def summarize_timing_csv(path: str) -> Dict[str, Dict[str, float]]:
    """Log latency statistics for a timing CSV, per method when it has one.

    Returns:
        Mapping of method (or ``ALL``) to its latency statistics
    """
    try:
        data = pd.read_csv(path)
    except (OSError, pd.errors.EmptyDataError) as e:
        logger.warning(f"Could not read timing records from {path}: {e}")
        return {}

    if 'method' in data.columns:
        groups = {method: group for method, group in data.groupby('method')}
    else:
        groups = {'ALL': data}

    summary = {}
    for method, group in groups.items():
        stats = calculate_latency_stats(group)
        summary[method] = stats
        if stats['count']:
            logger.info(
                f"{method} latency over {stats['count']} successful requests: "
                f"avg {stats['avg']:.2f} ms, p50 {stats['p50']:.2f} ms, "
                f"p95 {stats['p95']:.2f} ms, p99 {stats['p99']:.2f} ms"
            )
    return summary
