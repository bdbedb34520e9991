"""
Export cadence models.

The cadence window is derived, never stored: it is the rate-limit key under
which an external counter tracks how many executive reports a tenant exported.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import ExportCadence


class CadenceRule(BaseModel):
    """Export allowance of one plan tier."""

    model_config = ConfigDict(frozen=True)

    cadence: ExportCadence
    max_exports: int = Field(ge=1)


class ExportCadenceWindow(BaseModel):
    """
    Current export window for a plan tier.

    Attributes:
        start: Inclusive window start
        end: Exclusive window end
        key: Stable window key (m-YYYY-MM or w-YYYY-WW)
        cadence: Weekly or monthly
        max_exports: Exports allowed inside the window
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    key: str
    cadence: ExportCadence
    max_exports: int = Field(ge=1)
