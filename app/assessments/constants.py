"""Centralized constants for maturity scoring.

Values shared between the formula engine, the questionnaire store and the
request schemas live here so the reference scale and tolerances are declared
exactly once.
"""

from __future__ import annotations

from typing import Final

__all__ = [
    "DEFAULT_SCALE_MIN",
    "DEFAULT_SCALE_MAX",
    "PERCENT_MAX",
    "WEIGHT_TARGET",
    "WEIGHT_TOLERANCE",
    "QUESTIONS_PER_ELEMENT",
    "DATA_RETENTION_DAYS",
]

# Likert scale of the reference questionnaire (0 = absent .. 5 = leading).
DEFAULT_SCALE_MIN: Final[int] = 0
DEFAULT_SCALE_MAX: Final[int] = 5

PERCENT_MAX: Final[float] = 100.0

# Area weights of a version must sum to WEIGHT_TARGET within WEIGHT_TOLERANCE.
WEIGHT_TARGET: Final[float] = 1.0
WEIGHT_TOLERANCE: Final[float] = 1e-3

# Element score averages a pair of questions.
QUESTIONS_PER_ELEMENT: Final[int] = 2

# Respondent data is retained for two years after creation.
DATA_RETENTION_DAYS: Final[int] = 730
