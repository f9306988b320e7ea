"""Progress percentage calculation for the hafalan and tilawah tracks.

Both tracks keep a small summary row per student that is recomputed every
time a lesson is recorded:

* hafalan counts distinct surahs; the percentage is taken against the 114
  surahs of the Quran.
* tilawah stores the current jilid and page; every jilid is assumed to have
  100 pages regardless of its real length, so only the page number feeds
  the percentage.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from surahs import TOTAL_SURAH

PAGES_PER_JILID = 100
# Largest page accepted from the free-text page field.
MAX_PAGE = 9999

HAFALAN = "hafalan"
TILAWAH = "tilawah"
ENTRY_TYPES = (HAFALAN, TILAWAH)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _percent(done: float, total: int) -> int:
    # Half-up rounding: 0.5 goes to 1, not to the nearest even number.
    return min(math.floor(done / total * 100 + 0.5), 100)


def hafalan_percentage(total_surah: int) -> int:
    return _percent(total_surah, TOTAL_SURAH)


def tilawah_percentage(page: int) -> int:
    return _percent(page, PAGES_PER_JILID)


def parse_page(text: Optional[str]) -> int:
    """Read the leading integer of a page field (``"12-15"`` gives 12).

    Text without a leading number counts as page 0. Raises ``ValueError``
    when the number is outside ``-MAX_PAGE..MAX_PAGE``.
    """
    match = _LEADING_INT.match(text or "")
    if not match:
        return 0
    page = int(match.group(1))
    if abs(page) > MAX_PAGE:
        raise ValueError(f"page {match.group(1)} is out of range")
    return page


@dataclass
class HafalanProgress:
    student_id: str
    total_surah: int = 0
    last_surah: Optional[str] = None
    percentage: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "HafalanProgress":
        return cls(
            student_id=row["student_id"],
            total_surah=row.get("total_surah") or 0,
            last_surah=row.get("last_surah"),
            percentage=row.get("percentage") or 0,
        )

    def to_row(self) -> dict:
        return {
            "student_id": self.student_id,
            "total_surah": self.total_surah,
            "last_surah": self.last_surah,
            "percentage": self.percentage,
        }


@dataclass
class TilawahProgress:
    student_id: str
    jilid: Optional[str] = None
    page: Optional[int] = None
    percentage: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TilawahProgress":
        return cls(
            student_id=row["student_id"],
            jilid=row.get("jilid"),
            page=row.get("page"),
            percentage=row.get("percentage") or 0,
        )

    def to_row(self) -> dict:
        return {
            "student_id": self.student_id,
            "jilid": self.jilid,
            "page": self.page,
            "percentage": self.percentage,
        }


def record_hafalan_entry(previous: Optional[HafalanProgress], surah_name: str,
                         student_id: Optional[str] = None) -> HafalanProgress:
    """Apply a newly recorded hafalan lesson to the student's summary.

    The surah count only grows when ``surah_name`` differs from the last
    recorded surah (exact, case-sensitive comparison), so several lessons on
    the same surah count once. ``student_id`` is needed only when there is
    no previous summary.
    """
    if previous is None:
        previous = HafalanProgress(student_id=student_id)
    total = previous.total_surah
    if surah_name != previous.last_surah:
        total += 1
    return HafalanProgress(
        student_id=previous.student_id,
        total_surah=total,
        last_surah=surah_name,
        percentage=hafalan_percentage(total),
    )


def record_tilawah_entry(previous: Optional[TilawahProgress], jilid: str, page: int,
                         student_id: Optional[str] = None) -> TilawahProgress:
    """Move the tilawah summary to ``jilid``/``page``.

    No monotonicity check: recording an earlier page moves the summary back.
    """
    owner = previous.student_id if previous is not None else student_id
    return TilawahProgress(
        student_id=owner,
        jilid=jilid,
        page=page,
        percentage=tilawah_percentage(page),
    )
