"""
Records emitted by the streaming pipeline.

``TalentRecord`` is one ranked, fully populated result.  When a talent code
cannot be resolved the record still goes out, carrying one of the
placeholder strings below instead of a code.

``ErrorRecord`` is the single terminal indicator of a run that failed before
any record could be produced (bad credentials, rankings query failure).
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict, Field

TALENT_UNAVAILABLE = "[Talent data unavailable]"
MISSING_REPORT_DATA = "[Missing report data]"


class TalentRecord(BaseModel):
    """A single ranked player with their talent string and log link.

    Attributes:
        rank: 1-based position among emitted records (Anonymous excluded).
        name: Character display name.
        talent_string: Talent import code, or a placeholder sentinel.
        log_url: ``<base>/reports/<report_code>#fight=<fight_id>``.
    """

    model_config = ConfigDict(frozen=True)

    rank: int = Field(ge=1, le=10)
    name: str
    talent_string: str
    log_url: str

    @property
    def is_placeholder(self) -> bool:
        return self.talent_string in (TALENT_UNAVAILABLE, MISSING_REPORT_DATA)


class ErrorRecord(BaseModel):
    """Terminal error surfaced to the consumer in place of any records."""

    model_config = ConfigDict(frozen=True)

    kind: str
    message: str


StreamItem = Union[TalentRecord, ErrorRecord]


def build_log_url(base_url: str, report_code: str, fight_id: int) -> str:
    """Build the public report link for one fight."""
    return f"{base_url.rstrip('/')}/reports/{report_code}#fight={fight_id}"
