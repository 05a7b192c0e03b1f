"""
Error types and typed failure results for the analytics core
"""

from dataclasses import dataclass, field


class AnalyticsError(Exception):
    """Base class for analytics errors"""


class InvalidRecord(AnalyticsError):
    """A malformed attempt, performance or history record"""

    def __init__(self, kind: str, reason: str, record_id: str | None = None):
        self.kind = kind
        self.reason = reason
        self.record_id = record_id
        label = f"{kind} {record_id}" if record_id else kind
        super().__init__(f"Invalid {label}: {reason}")


class ImportValidationError(AnalyticsError):
    """The export document failed top-level shape validation"""


@dataclass
class InsufficientData:
    """Not enough history to compute a requested analysis"""

    analysis: str
    available_tests: int
    required_tests: int
    missing_requirements: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        remaining = max(0, self.required_tests - self.available_tests)
        return (
            f"{self.analysis} needs at least {self.required_tests} completed tests "
            f"({self.available_tests} available, {remaining} more to go)"
        )
