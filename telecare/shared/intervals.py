"""Half-open time interval helpers shared by slot listing and booking"""

from datetime import datetime

from sqlalchemy import and_


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """[start_a, end_a) and [start_b, end_b) overlap iff each starts before the other ends"""
    return start_a < end_b and end_a > start_b


def overlap_clause(start_column, end_column, start: datetime, end: datetime):
    """SQL form of ``overlaps`` against an interval stored in two columns"""
    return and_(start_column < end, end_column > start)
