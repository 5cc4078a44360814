from datetime import datetime, timezone
from typing import List, Optional

from app.features.audit.schemas.audit import (
    AuditMeta,
    AuditReport,
    Issue,
    IssueCounts,
    Severity,
    StrategyOutput,
)


def count_issues(issues: List[Issue]) -> IssueCounts:
    return IssueCounts(
        errors=sum(1 for issue in issues if issue.severity == Severity.ERROR),
        warnings=sum(1 for issue in issues if issue.severity == Severity.WARNING),
        notices=sum(1 for issue in issues if issue.severity == Severity.NOTICE),
    )


def _cap(value: str, max_length: int) -> str:
    return value[:max_length] if value else ""


def bound_issues(issues: List[Issue], max_issues: int, max_field_length: int) -> List[Issue]:
    """Keep the first `max_issues` in detection order, capping selector and context."""
    return [
        issue.model_copy(
            update={
                "selector": _cap(issue.selector, max_field_length),
                "context": _cap(issue.context, max_field_length),
            }
        )
        for issue in issues[:max_issues]
    ]


def normalize_report(
    url: str,
    output: StrategyOutput,
    *,
    standard: str,
    duration_ms: int,
    max_issues: int,
    max_field_length: int,
    timestamp: Optional[datetime] = None,
) -> AuditReport:
    """
    Package a strategy's output into the report shape.

    Counts cover every raw issue; only the returned list is truncated.
    The strategy's score is passed through untouched.
    """
    return AuditReport(
        url=url,
        standard=standard,
        score=output.score,
        counts=count_issues(output.issues),
        issues=bound_issues(output.issues, max_issues, max_field_length),
        meta=AuditMeta(
            method=output.method,
            duration_ms=duration_ms,
            timestamp=timestamp or datetime.now(timezone.utc),
            truncated=len(output.issues) > max_issues,
        ),
    )
