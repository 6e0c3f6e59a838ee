"""
personalizer - progressive FSRS-6 weight personalization with regression backtracking
"""

__version__ = "1.0.0"
