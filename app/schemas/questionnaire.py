from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from app.i18n.messages import StructureMessages
from app.models.maturity.enums import VersionStatus


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code keeps snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class QuestionOut(CamelModel):
    id: int
    code: str
    question_text: str
    levels_description: str
    order: int
    scale_min: int
    scale_max: int


class ElementOut(CamelModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    weight: float
    order: int
    questions: list[QuestionOut] = []


class AreaOut(CamelModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    weight: float
    order: int
    elements: list[ElementOut] = []


class VersionOut(CamelModel):
    id: int
    version_number: int
    status: VersionStatus
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    areas: list[AreaOut] = []


class VersionSummary(CamelModel):
    id: int
    version_number: int
    status: VersionStatus
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    area_count: int = 0
    assessment_count: int = 0


class _StructureUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    nullable_fields: ClassVar[frozenset[str]] = frozenset({"description"})

    @model_validator(mode="after")
    def _reject_nulls(self) -> "_StructureUpdate":
        nulled = sorted(
            name for name in self.model_fields_set if getattr(self, name) is None and name not in self.nullable_fields
        )
        if nulled:
            raise ValueError(f"{StructureMessages.NULL_FIELD}: {', '.join(nulled)}")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class AreaUpdate(_StructureUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0, le=1)
    order: Optional[int] = Field(default=None, ge=0)


class ElementUpdate(_StructureUpdate):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0, le=1)
    order: Optional[int] = Field(default=None, ge=0)


class QuestionUpdate(_StructureUpdate):
    question_text: Optional[str] = Field(default=None, min_length=1)
    levels_description: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)
    scale_min: Optional[int] = Field(default=None, ge=0)
    scale_max: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _scale_order(self) -> "QuestionUpdate":
        if self.scale_min is not None and self.scale_max is not None and self.scale_min >= self.scale_max:
            raise ValueError(StructureMessages.SCALE_ORDER)
        return self


class WeightCheckOut(CamelModel):
    valid: bool
    total_weight: float
    error: Optional[str] = None


class ValidationChecks(CamelModel):
    area_weights: WeightCheckOut


class ValidationReport(CamelModel):
    valid: bool
    checks: ValidationChecks
