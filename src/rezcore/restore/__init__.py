"""
Restore plan identity and point-in-time row selection
"""

from .plan_hash import (
    PLAINTEXT_FIELDS,
    PlaintextLeakError,
    PlanHashResult,
    compute_restore_plan_hash,
    verify_restore_plan_hash,
)
from .pit import (
    EmptyInputError,
    compare_pit_row_tuples,
    pit_sort_key,
    select_latest_pit_row_tuple,
    sorted_pit_row_tuples,
)

__all__ = [
    'PLAINTEXT_FIELDS',
    'PlaintextLeakError',
    'PlanHashResult',
    'compute_restore_plan_hash',
    'verify_restore_plan_hash',
    'EmptyInputError',
    'compare_pit_row_tuples',
    'pit_sort_key',
    'select_latest_pit_row_tuple',
    'sorted_pit_row_tuples',
]
