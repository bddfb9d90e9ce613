"""
Runs the three validation layers and turns them into a decision.

The layers are independent and side-effect free, so they run in a thread
pool; scoring waits for all three.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from ..config import Settings
from ..models.transcript import ExpectedTranscriptData, ExtractedTranscriptData
from ..models.validation import CombinedValidationResult, Decision, Severity
from .cross_reference import (
    CrossReferenceData,
    can_skip_cross_reference,
    skipped_cross_reference_result,
    validate_cross_reference,
)
from .extraction import validate_extraction
from .scoring import APPROVE_THRESHOLD, REVIEW_THRESHOLD, calculate_confidence, determine_auto_decision
from .semantic import validate_semantics

logger = logging.getLogger(__name__)

LAYER_NAMES = {1: "Extraction", 2: "Semantic", 3: "Cross-Ref"}


def run_validation_pipeline(
    extracted: ExtractedTranscriptData,
    expected: ExpectedTranscriptData,
    cross_ref: Optional[CrossReferenceData] = None,
    settings: Optional[Settings] = None,
) -> CombinedValidationResult:
    settings = settings or Settings()
    cross_ref = cross_ref or CrossReferenceData()

    skip_layer3 = settings.skip_cross_reference_if_empty and can_skip_cross_reference(cross_ref)

    with ThreadPoolExecutor(max_workers=3) as executor:
        f1 = executor.submit(validate_extraction, extracted, settings.extraction)
        f2 = executor.submit(validate_semantics, extracted, expected, settings.semantic)
        f3 = None
        if not skip_layer3:
            f3 = executor.submit(validate_cross_reference, extracted, cross_ref, settings.cross_reference)

        layer1 = f1.result()
        layer2 = f2.result()
        layer3 = f3.result() if f3 is not None else skipped_cross_reference_result()

    if skip_layer3:
        logger.debug("Cross-reference skipped: no reference data")

    score, has_critical = calculate_confidence([layer1, layer2, layer3])
    decision = determine_auto_decision(score, has_critical)

    reasons: List[str] = []
    if has_critical:
        reasons.append("Critical validation failure detected")
    if not layer1.passed:
        reasons.append("Extraction validation failed")
    if not layer2.passed:
        reasons.append("Semantic validation failed")
    if not layer3.passed:
        reasons.append("Cross-reference validation failed")

    if decision == Decision.APPROVE:
        reasons.append(f"Confidence score {score}% >= {APPROVE_THRESHOLD}% threshold")
    elif decision == Decision.REVIEW:
        reasons.append(
            f"Confidence score {score}% requires human review ({REVIEW_THRESHOLD}-{APPROVE_THRESHOLD - 1}%)"
        )
    else:
        reasons.append(f"Confidence score {score}% below {REVIEW_THRESHOLD}% threshold")

    return CombinedValidationResult(
        layer1=layer1,
        layer2=layer2,
        layer3=layer3,
        confidence=score,
        auto_decision=decision,
        reasons=reasons,
    )


def quick_validate(extracted: ExtractedTranscriptData, settings: Optional[Settings] = None) -> Tuple[bool, List[str]]:
    """
    Layer 1 only, for rejecting obviously broken extractions early.
    Returns (should_continue, critical error messages).
    """
    settings = settings or Settings()
    result = validate_extraction(extracted, settings.extraction)
    critical = [e.message for e in result.errors if e.severity == Severity.CRITICAL]
    return not critical, critical


def format_validation_result(result: CombinedValidationResult) -> str:
    lines = [
        "=== Validation Result ===",
        f"Confidence: {result.confidence}%",
        f"Decision: {result.auto_decision.value.upper()}",
        f"Reasons: {'; '.join(result.reasons)}",
        "",
    ]
    for number, layer in enumerate(result.layers, start=1):
        status = "PASSED" if layer.passed else "FAILED"
        lines.append(f"Layer {number} ({LAYER_NAMES[number]}): {status}")
        for error in layer.errors:
            lines.append(f"  [{error.severity.value}] {error.field}: {error.message}")
    return "\n".join(lines)
