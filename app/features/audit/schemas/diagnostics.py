"""
Diagnostics Schemas

Step-wise deployment checks: can the runtime import the browser and engine
libraries, and can it launch and close one browser.
"""
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DiagnosticStep(str, Enum):
    SELENIUM = "selenium"
    AXE = "axe"
    BROWSER = "browser"
    ALL = "all"


class DiagnosticsIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    step: DiagnosticStep = DiagnosticStep.ALL
    url: Optional[str] = None


class CheckOutcome(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    ok: bool
    detail: str
    duration_ms: int = 0


class DiagnosticsReport(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "step": "all",
                "url": None,
                "ok": False,
                "tests": {
                    "selenium": {"ok": True, "detail": "Import successful (4.25.0)", "durationMs": 0},
                    "axe": {"ok": True, "detail": "Import successful", "durationMs": 0},
                    "browser": {"ok": False, "detail": "Browser launch timed out after 8000ms", "durationMs": 8001},
                },
            }
        },
    )

    step: DiagnosticStep
    url: Optional[str] = None
    ok: bool
    tests: Dict[str, CheckOutcome] = Field(default_factory=dict)
