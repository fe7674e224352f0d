"""
Common utilities for the segmentation suite.
"""

from .reporting import Reporter
from .sample_data import generate_customer_data, seed_sample_data

__all__ = ["Reporter", "generate_customer_data", "seed_sample_data"]
