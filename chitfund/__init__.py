"""Chit fund tracker: enrollments, contributions and derived balances."""

__version__ = "0.1.0"
