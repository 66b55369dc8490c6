"""
Core utility functions for the portfolio engine.
"""

from .date_utils import minutes_ago, utcnow
from .id_utils import generate_id, generate_reference_number

__all__ = [
    "generate_id",
    "generate_reference_number",
    "minutes_ago",
    "utcnow",
]
