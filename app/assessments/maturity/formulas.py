"""Pure maturity scoring formulas detached from I/O concerns.

Roll-up across the three levels of the questionnaire:

    element % = mean(answer A, answer B) / scale max * 100
    area %    = unweighted mean of the area's element %
    total     = sum(area % * area weight)

Elements are not weighted inside their area; weighting only happens at the
area level. The engine receives an explicit :class:`QuestionnaireConfig` and
never touches the database.
"""

from __future__ import annotations

from math import fsum, isfinite
from typing import Iterable, Mapping, Sequence

from app.assessments.constants import DEFAULT_SCALE_MAX, PERCENT_MAX, WEIGHT_TARGET, WEIGHT_TOLERANCE
from app.assessments.maturity import load_config
from app.core.errors import ComputationError

from .types import (
    AreaConfig,
    AreaScore,
    ElementConfig,
    ElementScore,
    QuestionnaireConfig,
    TotalScore,
    WeightCheck,
)

__all__ = [
    "element_score",
    "area_score",
    "total_score",
    "classify_maturity_level",
    "check_weights",
    "score_element",
    "score_area",
    "calculate_full_assessment",
]


def element_score(answer_a: float, answer_b: float, scale_max: float = DEFAULT_SCALE_MAX) -> float:
    """Percentage (0..100) of a question pair on a ``0..scale_max`` scale.

    >>> element_score(3, 4)
    70.0
    """
    if scale_max <= 0:
        raise ValueError("scale_max must be positive")
    average = (answer_a + answer_b) / 2
    return average * PERCENT_MAX / scale_max


def area_score(element_percentages: Sequence[float]) -> float:
    """Unweighted arithmetic mean of element percentages."""
    if not element_percentages:
        raise ComputationError("Cannot score an area without elements")
    return fsum(element_percentages) / len(element_percentages)


def total_score(contributions: Iterable[float]) -> float:
    """Sum of area contributions (area % * area weight)."""
    return fsum(contributions)


def classify_maturity_level(score: float) -> str:
    """Map a total score to one of the five maturity labels.

    Bands are closed on the upper bound, so 20 is still "Iniziale" while
    20.01 is "Consapevole".
    """
    bands = load_config().bands
    for band in bands:
        if band.contains(score):
            return band.label
    return bands[-1].label


def check_weights(weights: Iterable[float], tolerance: float = WEIGHT_TOLERANCE) -> WeightCheck:
    total = fsum(weights)
    if abs(total - WEIGHT_TARGET) < tolerance:
        return WeightCheck(valid=True, total_weight=total)
    return WeightCheck(
        valid=False,
        total_weight=total,
        error=f"Total weight must equal 1.0 (100%), current: {total:g}",
    )


def _answer_for(answers: Mapping[str, object], code: str) -> int | None:
    value = answers.get(code)
    # bool is an int subclass but never a valid Likert answer
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and isfinite(value) and value.is_integer():
        return int(value)
    return None


def score_element(element: ElementConfig, answers: Mapping[str, object]) -> ElementScore | None:
    """Score one element, or return ``None`` when it has to be skipped.

    An element is skipped when it has fewer than two questions, when either
    answer is missing or malformed, or when an answer falls outside the
    question's configured scale. Extra questions beyond the first pair are
    ignored.
    """
    if len(element.questions) < 2:
        return None
    first, second = sorted(element.questions, key=lambda q: q.order)[:2]
    answer_a = _answer_for(answers, first.code)
    answer_b = _answer_for(answers, second.code)
    if answer_a is None or answer_b is None:
        return None
    if not (first.accepts(answer_a) and second.accepts(answer_b)):
        return None
    scale_max = max(first.scale_max, second.scale_max)
    if scale_max <= 0:
        return None
    return ElementScore(
        code=element.code,
        answer_a=answer_a,
        answer_b=answer_b,
        average=(answer_a + answer_b) / 2,
        percentage=element_score(answer_a, answer_b, scale_max),
    )


def score_area(area: AreaConfig, answers: Mapping[str, object]) -> tuple[AreaScore | None, list[str]]:
    """Score an area from its valid elements; returns (score, skipped element codes)."""
    scored: list[ElementScore] = []
    skipped: list[str] = []
    for element in sorted(area.elements, key=lambda e: e.order):
        result = score_element(element, answers)
        if result is None:
            skipped.append(element.code)
        else:
            scored.append(result)
    if not scored:
        return None, skipped
    percentage = area_score([element.percentage for element in scored])
    return (
        AreaScore(
            code=area.code,
            name=area.name,
            elements=tuple(scored),
            area_percentage=percentage,
            weight=area.weight,
            contribution=percentage * area.weight,
        ),
        skipped,
    )


def calculate_full_assessment(answers: Mapping[str, object], config: QuestionnaireConfig) -> TotalScore:
    """Compute the full hierarchical score for one respondent.

    Elements and areas without usable answers are skipped and listed in
    ``TotalScore.skipped`` (element codes, then ``area:<code>`` for areas left
    empty). Raises :class:`ComputationError` when no area can be scored, so an
    empty answer set is never reported as a 0 score.
    """
    areas: list[AreaScore] = []
    skipped: list[str] = []
    for area in sorted(config.areas, key=lambda a: a.order):
        result, skipped_elements = score_area(area, answers)
        skipped.extend(skipped_elements)
        if result is None:
            skipped.append(f"area:{area.code}")
            continue
        areas.append(result)

    if not areas:
        raise ComputationError(
            "No valid area could be scored from the given answers",
            detail={"answered": len(answers), "areas": len(config.areas)},
        )

    total = total_score(area.contribution for area in areas)
    return TotalScore(
        areas=tuple(areas),
        total_score=total,
        maturity_level=classify_maturity_level(total),
        skipped=tuple(skipped),
    )
