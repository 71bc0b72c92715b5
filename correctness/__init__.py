"""
Operation histories for linearizability checking.
"""

from .operation_history import (
    Operation,
    OperationHistory,
    Output,
    load_history,
    merge_histories,
)

__all__ = ['Operation', 'OperationHistory', 'Output', 'load_history', 'merge_histories']
