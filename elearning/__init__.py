"""Enrollment and progress reconciliation engine for an e-learning platform."""

__version__ = "0.1.0"
