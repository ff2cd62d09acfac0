from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session, selectinload

from app.db.repositories.base import Repository
from app.models.maturity.assessment import AssessmentResponse
from app.models.maturity.enums import AssessmentStatus, VersionStatus
from app.models.maturity.questionnaire import Area, Element, Question, QuestionnaireVersion


@dataclass
class QuestionnaireRepository(Repository[Session]):
    """Repository for questionnaire versions and their owned structure."""

    def _tree_options(self):
        return (
            selectinload(QuestionnaireVersion.areas)
            .selectinload(Area.elements)
            .selectinload(Element.questions),
        )

    def get(self, version_id: int) -> Optional[QuestionnaireVersion]:
        return self.db.get(QuestionnaireVersion, version_id)

    def get_with_tree(self, version_id: int) -> Optional[QuestionnaireVersion]:
        """Fetch a version with areas, elements and questions hydrated in order."""
        return (
            self.db.query(QuestionnaireVersion)
            .options(*self._tree_options())
            .filter(QuestionnaireVersion.id == version_id)
            .first()
        )

    def latest_published(self, *, with_tree: bool = False) -> Optional[QuestionnaireVersion]:
        query = self.db.query(QuestionnaireVersion).filter(
            QuestionnaireVersion.status == VersionStatus.PUBLISHED
        )
        if with_tree:
            query = query.options(*self._tree_options())
        return query.order_by(QuestionnaireVersion.version_number.desc()).first()

    def list_published(self) -> List[QuestionnaireVersion]:
        return (
            self.db.query(QuestionnaireVersion)
            .filter(QuestionnaireVersion.status == VersionStatus.PUBLISHED)
            .all()
        )

    def list_with_counts(self) -> List[Tuple[QuestionnaireVersion, int, int]]:
        """Return ``(version, area_count, assessment_count)`` ordered by version number desc."""
        area_counts = (
            self.db.query(Area.version_id, func.count(Area.id).label("n"))
            .group_by(Area.version_id)
            .subquery()
        )
        assessment_counts = (
            self.db.query(AssessmentResponse.version_id, func.count(AssessmentResponse.id).label("n"))
            .group_by(AssessmentResponse.version_id)
            .subquery()
        )
        rows = (
            self.db.query(
                QuestionnaireVersion,
                func.coalesce(area_counts.c.n, 0),
                func.coalesce(assessment_counts.c.n, 0),
            )
            .outerjoin(area_counts, area_counts.c.version_id == QuestionnaireVersion.id)
            .outerjoin(assessment_counts, assessment_counts.c.version_id == QuestionnaireVersion.id)
            .order_by(QuestionnaireVersion.version_number.desc())
            .all()
        )
        return [(version, int(areas), int(assessments)) for version, areas, assessments in rows]

    def max_version_number(self) -> int:
        return int(self.db.query(func.coalesce(func.max(QuestionnaireVersion.version_number), 0)).scalar() or 0)

    def count_assessments(self, version_id: int, status: Optional[AssessmentStatus] = None) -> int:
        query = self.db.query(func.count(AssessmentResponse.id)).filter(
            AssessmentResponse.version_id == version_id
        )
        if status is not None:
            query = query.filter(AssessmentResponse.status == status)
        return int(query.scalar() or 0)

    def archive_published_except(self, version_id: int) -> int:
        """Archive every PUBLISHED version other than ``version_id``."""
        return self._execute_update(
            update(QuestionnaireVersion)
            .where(QuestionnaireVersion.status == VersionStatus.PUBLISHED)
            .where(QuestionnaireVersion.id != version_id)
            .values(status=VersionStatus.ARCHIVED),
            synchronize="fetch",
        )

    def compare_and_set_status(
        self,
        version_id: int,
        *,
        expected: VersionStatus,
        new: VersionStatus,
        published_at: Optional[datetime] = None,
    ) -> bool:
        """Flip ``expected`` -> ``new`` only if the row still holds ``expected``."""
        values: dict[str, object] = {"status": new}
        if published_at is not None:
            values["published_at"] = published_at
        return self._compare_and_set(
            update(QuestionnaireVersion)
            .where(QuestionnaireVersion.id == version_id)
            .where(QuestionnaireVersion.status == expected)
            .values(**values)
        )

    def clone(self, source: QuestionnaireVersion, *, version_number: int) -> QuestionnaireVersion:
        cloned = QuestionnaireVersion(version_number=version_number, status=VersionStatus.DRAFT)
        for area in sorted(source.areas, key=lambda a: a.order):
            cloned.areas.append(
                Area(
                    code=area.code,
                    name=area.name,
                    description=area.description,
                    weight=area.weight,
                    order=area.order,
                    elements=[
                        Element(
                            code=element.code,
                            name=element.name,
                            description=element.description,
                            weight=element.weight,
                            order=element.order,
                            questions=[
                                Question(
                                    code=question.code,
                                    question_text=question.question_text,
                                    levels_description=question.levels_description,
                                    order=question.order,
                                    scale_min=question.scale_min,
                                    scale_max=question.scale_max,
                                )
                                for question in sorted(element.questions, key=lambda q: q.order)
                            ],
                        )
                        for element in sorted(area.elements, key=lambda e: e.order)
                    ],
                )
            )
        self.db.add(cloned)
        self.db.flush()
        return cloned

    def delete(self, version: QuestionnaireVersion) -> None:
        self.db.delete(version)

    def get_area(self, version_id: int, area_id: int) -> Optional[Area]:
        return (
            self.db.query(Area)
            .filter(Area.id == area_id, Area.version_id == version_id)
            .first()
        )

    def get_element(self, version_id: int, element_id: int) -> Optional[Element]:
        return (
            self.db.query(Element)
            .join(Area, Element.area_id == Area.id)
            .filter(Element.id == element_id, Area.version_id == version_id)
            .first()
        )

    def get_question(self, version_id: int, question_id: int) -> Optional[Question]:
        return (
            self.db.query(Question)
            .join(Element, Question.element_id == Element.id)
            .join(Area, Element.area_id == Area.id)
            .filter(Question.id == question_id, Area.version_id == version_id)
            .first()
        )
