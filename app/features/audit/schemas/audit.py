"""
Audit Schemas

Request, issue and report models shared by both audit strategies.
Wire names are camelCase (durationMs, timeoutMs); Python names stay snake_case.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"


class Strategy(str, Enum):
    FULL_SCAN = "full"
    HEURISTIC = "heuristic"


class AuditIn(BaseModel):
    """Raw POST body. `url` is optional here so a missing URL maps to a 400, not a 422."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: Optional[str] = None
    timeout_ms: Optional[float] = Field(default=None, alias="timeoutMs", gt=0, allow_inf_nan=False)

    @field_validator("timeout_ms", mode="before")
    @classmethod
    def validate_timeout_ms(cls, v):
        # JSON booleans and numeric strings are not durations
        if v is not None and (isinstance(v, bool) or not isinstance(v, (int, float))):
            raise ValueError("timeoutMs must be a number")
        return v


class AuditRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_url: str
    deadline_ms: int
    strategy: Strategy


class Issue(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "code": "image-alt",
                "severity": "error",
                "message": "Images must have alternate text",
                "selector": "#hero > img",
                "context": '<img src="/banner.png">',
            }
        },
    )

    code: str
    severity: Severity
    message: str
    selector: str = ""
    context: str = ""


class StrategyOutput(BaseModel):
    """What a strategy hands to the normalizer: the full raw issue set and its own score."""

    issues: List[Issue]
    score: int
    method: str


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class IssueCounts(_CamelModel):
    errors: int = 0
    warnings: int = 0
    notices: int = 0


class AuditMeta(_CamelModel):
    method: str
    duration_ms: int
    timestamp: datetime
    truncated: bool


class AuditReport(_CamelModel):
    url: str
    standard: str
    score: int = Field(ge=0, le=100)
    counts: IssueCounts
    issues: List[Issue]
    meta: AuditMeta
