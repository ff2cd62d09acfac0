"""Out-of-band report delivery (PDF render + email) for submitted assessments.

Delivery is keyed by assessment id and safe to run more than once: an
assessment already in ``EMAIL_SENT`` is left untouched. Failures never
propagate to the caller; they end up as a status annotation on the
assessment (``PDF_FAILED`` / ``EMAIL_FAILED``) that the retry script picks
up later.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional, Protocol, TypeVar

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings, settings
from app.core.errors import ConfigurationError, DomainError
from app.core.logging import get_logger
from app.core.metrics import inc_counter
from app.db.repositories import AssessmentRepository
from app.i18n.messages import ReportTexts
from app.models.maturity import AssessmentResponse, AssessmentStatus
from app.services.mailer import SmtpMailer
from app.services.report import ReportlabRenderer, Respondent, render_email_html

logger = get_logger("maturity.services.delivery", component="delivery")

T = TypeVar("T")


class ReportRenderer(Protocol):
    def render(self, snapshot: Mapping[str, Any], respondent: Respondent) -> bytes: ...


class Mailer(Protocol):
    def send(self, to: str, subject: str, html: str, attachment: bytes, filename: str) -> str: ...


class TaskSubmitter(Protocol):
    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None: ...


@dataclass
class BackgroundTaskSubmitter:
    """Run tasks after the HTTP response has been sent."""

    tasks: BackgroundTasks

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self.tasks.add_task(fn, *args, **kwargs)


class InlineTaskSubmitter:
    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        fn(*args, **kwargs)


@dataclass
class NullTaskSubmitter:
    """Drop tasks; submitted assessments stay pending for the retry script."""

    dropped: list[tuple[Callable[..., Any], tuple[Any, ...]]] = field(default_factory=list)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self.dropped.append((fn, args))
        logger.debug("delivery_task_dropped", extra={"structured_data": {"task": getattr(fn, "__name__", repr(fn))}})


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_seconds: float = 5.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "RetryPolicy":
        return cls(
            max_attempts=config.delivery_max_attempts,
            backoff_seconds=config.delivery_backoff_seconds,
            backoff_factor=config.delivery_backoff_factor,
        )

    def delay(self, attempt: int) -> float:
        """Delay before attempt ``attempt + 1`` (attempts are 1-based)."""
        return self.backoff_seconds * (self.backoff_factor ** (attempt - 1))


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    assessment_id: str
    status: Optional[AssessmentStatus]
    attempts: int = 0
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.status is AssessmentStatus.EMAIL_SENT


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _with_retry(
    step: str,
    action: Callable[[], T],
    policy: RetryPolicy,
    *,
    assessment_id: str,
    sleep: Callable[[float], None],
) -> tuple[Optional[T], int, Optional[str]]:
    """Run ``action`` up to ``policy.max_attempts`` times; returns (value, attempts, last_error)."""
    last_error: Optional[str] = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return action(), attempt, None
        except ConfigurationError as exc:
            # Retrying cannot fix missing configuration.
            logger.warning(
                "delivery_attempt_failed",
                extra={"structured_data": {"step": step, "assessment_id": assessment_id, "attempt": attempt, "error": exc.message}},
            )
            return None, attempt, exc.message
        except Exception as exc:
            last_error = exc.message if isinstance(exc, DomainError) else str(exc) or exc.__class__.__name__
            inc_counter(f"delivery.{step}.attempt_failed")
            logger.warning(
                "delivery_attempt_failed",
                extra={"structured_data": {"step": step, "assessment_id": assessment_id, "attempt": attempt, "error": last_error}},
            )
            if attempt < policy.max_attempts:
                sleep(policy.delay(attempt))
    return None, policy.max_attempts, last_error


def _annotate(db: Session, assessment: AssessmentResponse, status: AssessmentStatus, **values: Any) -> None:
    assessment.status = status
    for key, value in values.items():
        setattr(assessment, key, value)
    db.commit()


def deliver_report(
    session_factory: sessionmaker[Session],
    assessment_id: str,
    renderer: ReportRenderer,
    mailer: Mailer,
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    subject: Optional[str] = None,
) -> DeliveryOutcome:
    """Render and email the report of one submitted assessment. Never raises."""
    policy = policy or RetryPolicy.from_settings()
    try:
        with session_factory() as db:
            assessment = AssessmentRepository(db).get(assessment_id)
            if assessment is None:
                logger.warning("delivery_assessment_missing", extra={"structured_data": {"assessment_id": assessment_id}})
                return DeliveryOutcome(assessment_id, None, error="not found")
            if assessment.status is AssessmentStatus.DRAFT or not assessment.calculated_scores:
                return DeliveryOutcome(assessment_id, assessment.status, error="not submitted")
            if assessment.status is AssessmentStatus.EMAIL_SENT:
                return DeliveryOutcome(assessment_id, assessment.status)

            snapshot = dict(assessment.calculated_scores)
            respondent = Respondent(
                assessment_id=assessment.id,
                email=assessment.user_email,
                name=assessment.user_name,
                submitted_at=assessment.submitted_at,
            )

            pdf, pdf_attempts, pdf_error = _with_retry(
                "pdf",
                lambda: renderer.render(snapshot, respondent),
                policy,
                assessment_id=assessment_id,
                sleep=sleep,
            )
            attempts = (assessment.delivery_attempts or 0) + pdf_attempts
            if pdf is None:
                inc_counter("delivery.pdf.failed")
                _annotate(
                    db,
                    assessment,
                    AssessmentStatus.PDF_FAILED,
                    delivery_attempts=attempts,
                    last_delivery_error=(pdf_error or "")[:500],
                )
                logger.error(
                    "delivery_pdf_failed",
                    extra={"structured_data": {"assessment_id": assessment_id, "attempts": pdf_attempts, "error": pdf_error}},
                )
                return DeliveryOutcome(assessment_id, AssessmentStatus.PDF_FAILED, attempts, pdf_error)

            _annotate(
                db,
                assessment,
                AssessmentStatus.PDF_GENERATED,
                pdf_generated_at=_utcnow(),
                delivery_attempts=attempts,
            )

            html = render_email_html(snapshot, respondent)
            filename = ReportTexts.ATTACHMENT_NAME.format(assessment_id=assessment_id)
            message_id, mail_attempts, mail_error = _with_retry(
                "email",
                lambda: mailer.send(respondent.email, subject or settings.email_subject, html, pdf, filename),
                policy,
                assessment_id=assessment_id,
                sleep=sleep,
            )
            attempts += mail_attempts
            if message_id is None:
                inc_counter("delivery.email.failed")
                _annotate(
                    db,
                    assessment,
                    AssessmentStatus.EMAIL_FAILED,
                    delivery_attempts=attempts,
                    last_delivery_error=(mail_error or "")[:500],
                )
                logger.error(
                    "delivery_email_failed",
                    extra={"structured_data": {"assessment_id": assessment_id, "attempts": mail_attempts, "error": mail_error}},
                )
                return DeliveryOutcome(assessment_id, AssessmentStatus.EMAIL_FAILED, attempts, mail_error)

            _annotate(
                db,
                assessment,
                AssessmentStatus.EMAIL_SENT,
                email_sent_at=_utcnow(),
                email_message_id=message_id,
                delivery_attempts=attempts,
                last_delivery_error=None,
            )
            inc_counter("delivery.completed")
            logger.event("report_delivered", assessment_id=assessment_id, attempts=attempts)
            return DeliveryOutcome(assessment_id, AssessmentStatus.EMAIL_SENT, attempts)
    except Exception as exc:
        inc_counter("delivery.crashed")
        logger.exception("delivery_crashed", extra={"structured_data": {"assessment_id": assessment_id}})
        return DeliveryOutcome(assessment_id, None, error=str(exc) or exc.__class__.__name__)


@dataclass
class DeliveryPipeline:
    """Bundle of collaborators handed to :func:`deliver_report`."""

    session_factory: sessionmaker[Session]
    renderer: ReportRenderer
    mailer: Mailer
    policy: RetryPolicy = field(default_factory=RetryPolicy.from_settings)
    sleep: Callable[[float], None] = time.sleep

    def run(self, assessment_id: str) -> DeliveryOutcome:
        return deliver_report(
            self.session_factory, assessment_id, self.renderer, self.mailer, self.policy, sleep=self.sleep
        )

    def dispatch(self, submitter: TaskSubmitter, assessment_id: str) -> None:
        submitter.submit(self.run, assessment_id)


def build_default_pipeline(session_factory: sessionmaker[Session], config: Settings = settings) -> DeliveryPipeline:
    return DeliveryPipeline(
        session_factory=session_factory,
        renderer=ReportlabRenderer(),
        mailer=SmtpMailer.from_settings(config),
        policy=RetryPolicy.from_settings(config),
    )


def task_submitter_for(mode: str, background: Optional[BackgroundTasks] = None) -> TaskSubmitter:
    if mode == "inline":
        return InlineTaskSubmitter()
    if mode == "background" and background is not None:
        return BackgroundTaskSubmitter(background)
    return NullTaskSubmitter()
