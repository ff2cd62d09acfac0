from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from app.assessments.constants import DEFAULT_SCALE_MAX, DEFAULT_SCALE_MIN


@dataclass(frozen=True, slots=True)
class MaturityBand:
    """Inclusive upper bound of a maturity label (``None`` for the top band)."""

    label: str
    upper: float | None

    def contains(self, score: float) -> bool:
        return self.upper is None or score <= self.upper


@dataclass(frozen=True, slots=True)
class ScoringParameters:
    """Parameters loaded from ``config.yaml``."""

    bands: tuple[MaturityBand, ...]
    default_scale_max: int = DEFAULT_SCALE_MAX

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ScoringParameters":
        bands = tuple(
            MaturityBand(label=str(entry["label"]), upper=None if entry.get("upper") is None else float(entry["upper"]))
            for entry in raw.get("maturity_bands", [])
        )
        if not bands or bands[-1].upper is not None:
            raise ValueError("maturity_bands must end with an open-ended band")
        uppers = [band.upper for band in bands[:-1]]
        if uppers != sorted(uppers):
            raise ValueError("maturity_bands must be ordered by ascending upper bound")
        return cls(bands=bands, default_scale_max=int(raw.get("default_scale_max", DEFAULT_SCALE_MAX)))


# --- Questionnaire structure handed to the formula engine -------------------


@dataclass(frozen=True, slots=True)
class QuestionConfig:
    code: str
    order: int = 0
    scale_min: int = DEFAULT_SCALE_MIN
    scale_max: int = DEFAULT_SCALE_MAX

    def accepts(self, value: int) -> bool:
        return self.scale_min <= value <= self.scale_max


@dataclass(frozen=True, slots=True)
class ElementConfig:
    code: str
    name: str
    weight: float
    questions: tuple[QuestionConfig, ...] = ()
    order: int = 0


@dataclass(frozen=True, slots=True)
class AreaConfig:
    code: str
    name: str
    weight: float
    elements: tuple[ElementConfig, ...] = ()
    order: int = 0


@dataclass(frozen=True, slots=True)
class QuestionnaireConfig:
    """Immutable Version -> Area -> Element -> Question tree.

    Built once by the questionnaire store from a hydrated version; the
    formula engine never reaches back into the store.
    """

    areas: tuple[AreaConfig, ...]
    version_id: int | None = None
    version_number: int | None = None

    def questions_by_code(self) -> dict[str, QuestionConfig]:
        return {
            question.code: question
            for area in self.areas
            for element in area.elements
            for question in element.questions
        }

    def question_count(self) -> int:
        return sum(len(element.questions) for area in self.areas for element in area.elements)


# --- Computed score snapshot -------------------------------------------------


@dataclass(frozen=True, slots=True)
class ElementScore:
    code: str
    answer_a: int
    answer_b: int
    average: float
    percentage: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "answerA": self.answer_a,
            "answerB": self.answer_b,
            "average": self.average,
            "percentage": self.percentage,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ElementScore":
        return cls(
            code=str(raw["code"]),
            answer_a=int(raw["answerA"]),
            answer_b=int(raw["answerB"]),
            average=float(raw["average"]),
            percentage=float(raw["percentage"]),
        )


@dataclass(frozen=True, slots=True)
class AreaScore:
    code: str
    name: str
    elements: tuple[ElementScore, ...]
    area_percentage: float
    weight: float
    contribution: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "elements": [element.as_dict() for element in self.elements],
            "areaPercentage": self.area_percentage,
            "weight": self.weight,
            "contribution": self.contribution,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AreaScore":
        return cls(
            code=str(raw["code"]),
            name=str(raw["name"]),
            elements=tuple(ElementScore.from_dict(item) for item in raw.get("elements", [])),
            area_percentage=float(raw["areaPercentage"]),
            weight=float(raw["weight"]),
            contribution=float(raw["contribution"]),
        )


@dataclass(frozen=True, slots=True)
class TotalScore:
    """Snapshot persisted verbatim on a submitted assessment."""

    areas: tuple[AreaScore, ...]
    total_score: float
    maturity_level: str
    skipped: Sequence[str] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "areas": [area.as_dict() for area in self.areas],
            "totalScore": self.total_score,
            "maturityLevel": self.maturity_level,
        }
        if self.skipped:
            payload["skipped"] = list(self.skipped)
        return payload

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "TotalScore":
        return cls(
            areas=tuple(AreaScore.from_dict(item) for item in raw.get("areas", [])),
            total_score=float(raw["totalScore"]),
            maturity_level=str(raw["maturityLevel"]),
            skipped=tuple(raw.get("skipped", ())),
        )


@dataclass(frozen=True, slots=True)
class WeightCheck:
    valid: bool
    total_weight: float
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"valid": self.valid, "totalWeight": self.total_weight}
        if self.error:
            payload["error"] = self.error
        return payload
