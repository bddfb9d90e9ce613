from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class WarningLevel(str, Enum):
    WARNING = "warning"
    INFO = "info"


class Decision(str, Enum):
    APPROVE = "approve"
    REVIEW = "review"
    REJECT = "reject"


class ValidationError(BaseModel):
    """A failed check. Errors feed the confidence score."""

    field: str
    expected: str
    actual: str
    severity: Severity
    message: str


class ValidationWarning(BaseModel):
    """Diagnostic only; never affects the decision."""

    field: str
    message: str
    severity: WarningLevel = WarningLevel.WARNING


class ValidationResult(BaseModel):
    passed: bool
    errors: List[ValidationError] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    checks_performed: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def count(self, severity: Severity) -> int:
        return sum(1 for e in self.errors if e.severity == severity)


class CombinedValidationResult(BaseModel):
    layer1: ValidationResult
    layer2: ValidationResult
    layer3: ValidationResult
    confidence: int
    auto_decision: Decision
    reasons: List[str] = Field(default_factory=list)

    @property
    def layers(self) -> List[ValidationResult]:
        return [self.layer1, self.layer2, self.layer3]
