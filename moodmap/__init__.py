"""
moodmap - City mood timelines and significant-location tracking.

This package caches per-city sentiment with time-based invalidation, reduces
raw mood samples into labeled daypart timelines, and filters raw location
fixes into a bounded history of significant visits.
"""

__version__ = "0.1.0"
