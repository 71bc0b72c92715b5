"""
Shared utilities for benchmark metrics calculations: latency and request rates.
"""

import logging
from typing import Iterable

import pandas as pd

from persistence.record import RequestRecord

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ['send_time', 'is_write', 'receive_time']


def records_to_dataframe(records: Iterable[RequestRecord]) -> pd.DataFrame:
    """
    Build a DataFrame with one row per request, in issuance order.

    ``receive_time`` is a nullable integer column so unanswered requests stay
    empty instead of becoming floats.

    Args:
        records: Request records to convert

    Returns:
        DataFrame with send_time, is_write and receive_time columns
    """
    df = pd.DataFrame([record.to_dict() for record in records], columns=RECORD_COLUMNS)
    df['send_time'] = df['send_time'].astype('int64')
    df['is_write'] = df['is_write'].astype(bool)
    df['receive_time'] = df['receive_time'].astype('Int64')
    return df


def calculate_latency_stats(data: pd.DataFrame) -> dict:
    """
    Calculate latency statistics (mean and percentiles) in milliseconds.

    Only answered requests contribute.

    Args:
        data: DataFrame produced by records_to_dataframe()

    Returns:
        Dictionary with avg, p50, p95, p99 latency statistics
    """
    answered = data.dropna(subset=['receive_time'])

    if len(answered) == 0:
        return {
            'avg': 0.0,
            'p50': 0.0,
            'p95': 0.0,
            'p99': 0.0
        }

    latencies = (answered['receive_time'] - answered['send_time']).astype('float64')

    return {
        'avg': float(latencies.mean()),
        'p50': float(latencies.quantile(0.5)),
        'p95': float(latencies.quantile(0.95)),
        'p99': float(latencies.quantile(0.99))
    }


def calculate_requests_per_second(request_count: int, duration_seconds: float) -> float:
    """
    Calculate requests per second (RPS) from request count and duration.

    Args:
        request_count: Number of requests
        duration_seconds: Duration in seconds

    Returns:
        Requests per second (RPS)
    """
    if duration_seconds <= 0:
        return 0.0
    return request_count / duration_seconds


def calculate_run_duration_seconds(data: pd.DataFrame) -> float:
    """
    Span between the first send and the last receive, in seconds.

    Args:
        data: DataFrame produced by records_to_dataframe()

    Returns:
        Duration in seconds, 0.0 for an empty ledger
    """
    if len(data) == 0:
        return 0.0
    start = data['send_time'].min()
    receives = data['receive_time'].dropna()
    end = max(data['send_time'].max(), receives.max() if len(receives) else start)
    return float(end - start) / 1000.0
