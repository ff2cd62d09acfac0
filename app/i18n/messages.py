"""Message constants used across routers and services.

Error texts are English and name the exact rule that was violated. Texts
shown to respondents (email body, PDF report) are Italian, matching the
questionnaire language.
"""


class VersionMessages:
    """Questionnaire version lifecycle errors."""

    NOT_FOUND: str = "Version not found"
    NO_PUBLISHED: str = "No published version"
    ALREADY_PUBLISHED: str = "Version is already published"
    PUBLISH_ARCHIVED: str = "Cannot publish an archived version"
    PUBLISH_RACE: str = "Version changed status while publishing"
    ARCHIVE_DRAFT: str = "Cannot archive a draft version; publish or delete it instead"
    ALREADY_ARCHIVED: str = "Version is already archived"
    ARCHIVE_ACTIVE_DRAFTS: str = "Cannot archive version with active draft assessments"
    DELETE_NOT_DRAFT: str = "Only DRAFT versions can be deleted"
    DELETE_HAS_ASSESSMENTS: str = "Cannot delete version with assessments"
    IMMUTABLE: str = "Cannot modify a published or archived version"
    WEIGHT_TOTAL: str = "Total weight must equal 1.0 (100%), current: {total:g}"


class StructureMessages:
    """Area, element and question errors."""

    AREA_NOT_FOUND: str = "Area not found"
    ELEMENT_NOT_FOUND: str = "Element not found"
    QUESTION_NOT_FOUND: str = "Question not found"
    SCALE_ORDER: str = "scaleMin must be less than scaleMax"
    EMPTY_UPDATE: str = "No fields to update"
    NULL_FIELD: str = "Field cannot be null"


class AssessmentMessages:
    """Respondent workflow errors."""

    NOT_FOUND: str = "Assessment not found"
    CONSENT_REQUIRED: str = "Consent is required to start the assessment"
    ALREADY_SUBMITTED_UPDATE: str = "Cannot update submitted assessment"
    ALREADY_SUBMITTED: str = "Assessment already submitted"
    NOT_SUBMITTED: str = "Assessment not yet submitted"
    ANSWER_OUT_OF_RANGE: str = "Answer for {code} must be between {low} and {high}"
    NO_VALID_AREA: str = "No valid area could be scored from the given answers"


class AuthMessages:
    INVALID_CREDENTIALS: str = "Invalid admin credentials"
    MISSING_TOKEN: str = "Authentication required"
    INVALID_TOKEN: str = "Invalid or expired token"


class DeliveryMessages:
    SMTP_NOT_CONFIGURED: str = "SMTP is not configured"
    PDF_FAILED: str = "PDF generation failed"
    EMAIL_FAILED: str = "Email delivery failed"


class ReportTexts:
    """Italian texts of the emailed report."""

    TITLE: str = "AI Maturity Assessment"
    SUBTITLE: str = "Report di valutazione della maturità AI"
    GREETING: str = "Gentile {name},"
    GREETING_ANONYMOUS: str = "Gentile partecipante,"
    INTRO: str = (
        "grazie per aver completato l'AI Maturity Assessment. "
        "In allegato trovi il report completo con il dettaglio dei punteggi per area."
    )
    TOTAL_SCORE: str = "Punteggio complessivo"
    MATURITY_LEVEL: str = "Livello di maturità"
    AREA_HEADER: str = "Area"
    WEIGHT_HEADER: str = "Peso"
    PERCENT_HEADER: str = "Punteggio"
    CONTRIBUTION_HEADER: str = "Contributo"
    ELEMENT_HEADER: str = "Elemento"
    AREA_DETAIL: str = "Dettaglio per area"
    SUBMITTED_AT: str = "Data di compilazione"
    SKIPPED_NOTE: str = "Alcuni elementi non sono stati valutati per risposte mancanti: {codes}"
    CLOSING: str = "Cordiali saluti,<br/>Il team AI Maturity"
    ATTACHMENT_NAME: str = "ai-maturity-report-{assessment_id}.pdf"
