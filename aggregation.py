"""Composite student view joining a student row with its progress summaries."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional


@dataclass
class HafalanSummary:
    total: int = 0
    last_surah: str = ""
    percentage: int = 0


@dataclass
class TilawahSummary:
    jilid: str = ""
    page: int = 0
    percentage: int = 0


@dataclass
class StudentWithProgress:
    id: str
    name: str
    group: str
    teacher: str
    photo: str = ""
    grade: Optional[str] = None
    hafalan_progress: HafalanSummary = field(default_factory=HafalanSummary)
    tilawah_progress: TilawahSummary = field(default_factory=TilawahSummary)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_student_view(student: Mapping[str, Any],
                       hafalan: Optional[Mapping[str, Any]] = None,
                       tilawah: Optional[Mapping[str, Any]] = None) -> StudentWithProgress:
    """Build the view for one student.

    A missing summary row, or a null column in one, falls back to the zero
    value of that field.
    """
    hafalan = hafalan or {}
    tilawah = tilawah or {}
    return StudentWithProgress(
        id=student["id"],
        name=student["name"],
        photo=student.get("photo") or "",
        group=student.get("group_name") or "",
        grade=student.get("grade") or None,
        teacher=student.get("teacher") or "",
        hafalan_progress=HafalanSummary(
            total=hafalan.get("total_surah") or 0,
            last_surah=hafalan.get("last_surah") or "",
            percentage=hafalan.get("percentage") or 0,
        ),
        tilawah_progress=TilawahSummary(
            jilid=tilawah.get("jilid") or "",
            page=tilawah.get("page") or 0,
            percentage=tilawah.get("percentage") or 0,
        ),
    )


def join_progress(students: Iterable[Mapping[str, Any]],
                  hafalan_rows: Iterable[Mapping[str, Any]],
                  tilawah_rows: Iterable[Mapping[str, Any]]) -> List[StudentWithProgress]:
    """Left-join students with their summaries by ``student_id``, keeping student order."""
    hafalan_by_student = {}
    for row in hafalan_rows:
        hafalan_by_student.setdefault(row["student_id"], row)
    tilawah_by_student = {}
    for row in tilawah_rows:
        tilawah_by_student.setdefault(row["student_id"], row)
    return [
        build_student_view(
            student,
            hafalan_by_student.get(student["id"]),
            tilawah_by_student.get(student["id"]),
        )
        for student in students
    ]
