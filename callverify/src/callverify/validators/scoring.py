from typing import Iterable, Tuple

from ..models.validation import Decision, Severity, ValidationResult

BASE_SCORE = 100
PENALTIES = {
    Severity.CRITICAL: 50,
    Severity.MAJOR: 15,
    Severity.MINOR: 5,
}
APPROVE_THRESHOLD = 90
REVIEW_THRESHOLD = 70


def calculate_confidence(results: Iterable[ValidationResult]) -> Tuple[int, bool]:
    """Return (score clamped to [0, 100], has_critical_failure)."""
    score = BASE_SCORE
    has_critical = False
    for result in results:
        for error in result.errors:
            score -= PENALTIES[error.severity]
            if error.severity == Severity.CRITICAL:
                has_critical = True
    return max(0, min(100, score)), has_critical


def determine_auto_decision(score: int, has_critical_failure: bool) -> Decision:
    # A critical error rejects whatever the number says
    if has_critical_failure:
        return Decision.REJECT
    if score >= APPROVE_THRESHOLD:
        return Decision.APPROVE
    if score >= REVIEW_THRESHOLD:
        return Decision.REVIEW
    return Decision.REJECT
