"""
Persistence layer for customers, purchases and segment assignments.
"""

from .segment_store import SegmentStore, SegmentAssignment, create_db_engine

__all__ = ["SegmentStore", "SegmentAssignment", "create_db_engine"]
