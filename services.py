"""Student and progress operations used by the HTTP layer.

:class:`StudentService` glues the persistence store to the progress
calculations. Failures never propagate to the caller: reads fall back to an
empty result and writes report ``False``/``None``, and in both cases a
:class:`Notification` is emitted for the user.

Recording a lesson is a two-step operation. The entry is appended first and
the student's summary row is recomputed afterwards; if the second step fails
the entry is kept and the summary stays stale until the next lesson is
recorded. :class:`SubmitOutcome` reports both steps separately.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from aggregation import StudentWithProgress, build_student_view, join_progress
from app_logging import get_logger
from progress import (
    ENTRY_TYPES,
    HAFALAN,
    TILAWAH,
    HafalanProgress,
    TilawahProgress,
    parse_page,
    record_hafalan_entry,
    record_tilawah_entry,
)
from ranking import rank_by_progress
from store import FetchError, Row, RowStore, StoreError, WriteError
from student_filters import StudentFilterState, filter_options, filter_students

_logger = get_logger("hafalan.services")

STUDENT_FIELDS = ("name", "photo", "group_name", "grade", "teacher")


@dataclass
class Notification:
    title: str
    description: str
    variant: str = "default"  # default, destructive


@dataclass
class SubmitOutcome:
    """Result of :meth:`StudentService.submit_progress_entry`.

    Truthy when the entry itself was saved, whatever happened to the summary.
    """

    entry_saved: bool
    summary_updated: bool = False
    entry: Optional[Row] = None
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.entry_saved

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_saved": self.entry_saved,
            "summary_updated": self.summary_updated,
            "entry": self.entry,
            "error": self.error,
        }


def _log_notification(notification: Notification) -> None:
    _logger.info(
        "notification",
        extra={"title": notification.title, "description": notification.description,
               "variant": notification.variant},
    )


class StudentService:
    """Facade over the student, summary and entry collections."""

    def __init__(self, store: Optional[RowStore] = None,
                 notify: Optional[Callable[[Notification], None]] = None) -> None:
        self.store = store or RowStore()
        self.notify = notify or _log_notification

    # -- reads -------------------------------------------------------------

    def load_students(self) -> List[StudentWithProgress]:
        """Return every student joined with both progress summaries."""
        try:
            students = self.store.select("students")
            hafalan_rows = self.store.select("hafalan_progress")
            tilawah_rows = self.store.select("tilawah_progress")
        except FetchError:
            _logger.exception("failed to fetch students")
            self._failed("Failed to fetch students. Please try again later.")
            return []
        return join_progress(students, hafalan_rows, tilawah_rows)

    def find_student(self, student_id: str) -> Optional[StudentWithProgress]:
        """Like :meth:`get_student`, but a failed read raises :class:`FetchError`.

        Lets callers tell a missing student apart from an unavailable store.
        """
        student = self.store.select_one("students", id=student_id)
        if student is None:
            return None
        hafalan = self.store.select_one("hafalan_progress", student_id=student_id)
        tilawah = self.store.select_one("tilawah_progress", student_id=student_id)
        return build_student_view(student, hafalan, tilawah)

    def get_student(self, student_id: str) -> Optional[StudentWithProgress]:
        try:
            return self.find_student(student_id)
        except FetchError:
            _logger.exception("failed to fetch student", extra={"student_id": student_id})
            self._failed("Failed to fetch student details. Please try again later.")
            return None

    def get_progress_entries(self, student_id: str) -> List[Row]:
        """Return the student's recorded lessons, most recent date first."""
        try:
            return self.store.select("progress_entries", order_by="date",
                                     descending=True, student_id=student_id)
        except FetchError:
            _logger.exception("failed to fetch progress entries",
                              extra={"student_id": student_id})
            self._failed("Failed to fetch progress entries. Please try again later.")
            return []

    # -- list views --------------------------------------------------------

    def apply_filters(self, students: List[StudentWithProgress],
                      filter_state: StudentFilterState) -> List[StudentWithProgress]:
        return filter_students(students, filter_state)

    def rank_by_progress(self, students: List[StudentWithProgress]) -> List[StudentWithProgress]:
        return rank_by_progress(students)

    def filter_options(self, students: List[StudentWithProgress]) -> Tuple[List[str], List[str]]:
        return filter_options(students)

    # -- student writes ----------------------------------------------------

    def create_student(self, values: Mapping[str, Any]) -> Optional[Row]:
        """Insert a student together with empty hafalan and tilawah summaries."""
        row = {key: values.get(key) for key in STUDENT_FIELDS}
        row["photo"] = row["photo"] or ""
        row["grade"] = row["grade"] or None
        try:
            student = self.store.insert("students", row)
            self.store.insert("hafalan_progress",
                              {"student_id": student["id"], "total_surah": 0, "percentage": 0})
            self.store.insert("tilawah_progress",
                              {"student_id": student["id"], "percentage": 0})
        except WriteError:
            _logger.exception("failed to create student")
            self._failed("Failed to add student. Please try again later.")
            return None
        self._succeeded("Student has been successfully added")
        return student

    def update_student(self, student_id: str, values: Mapping[str, Any]) -> bool:
        changes = {key: values[key] for key in STUDENT_FIELDS if key in values}
        if "photo" in changes:
            changes["photo"] = changes["photo"] or ""
        if "grade" in changes:
            changes["grade"] = changes["grade"] or None
        try:
            updated = self.store.update("students", student_id, changes)
        except WriteError:
            _logger.exception("failed to update student", extra={"student_id": student_id})
            self._failed("Failed to update student. Please try again later.")
            return False
        if updated is None:
            self._failed("Student not found.")
            return False
        self._succeeded("Student has been successfully updated")
        return True

    def delete_student(self, student_id: str) -> bool:
        """Delete a student along with its summaries and recorded lessons."""
        try:
            *_, deleted = self.store.delete_together([
                ("progress_entries", {"student_id": student_id}),
                ("hafalan_progress", {"student_id": student_id}),
                ("tilawah_progress", {"student_id": student_id}),
                ("students", {"id": student_id}),
            ])
        except WriteError:
            _logger.exception("failed to delete student", extra={"student_id": student_id})
            self._failed("Failed to delete student. Please try again later.")
            return False
        if not deleted:
            self._failed("Student not found.")
            return False
        self._succeeded("Student has been successfully deleted")
        return True

    # -- progress entries --------------------------------------------------

    def submit_progress_entry(self, entry: Mapping[str, Any]) -> SubmitOutcome:
        """Append a lesson to the log and recompute the matching summary.

        ``entry`` carries ``student_id``, ``date``, ``type``,
        ``surah_or_jilid``, ``ayat_or_page`` and optionally ``notes``.
        Raises ``ValueError`` for an unknown type or an out-of-range tilawah
        page, before anything is stored.
        """
        if entry.get("type") not in ENTRY_TYPES:
            raise ValueError(f"unknown progress type {entry.get('type')!r}")
        if entry["type"] == TILAWAH:
            parse_page(entry.get("ayat_or_page"))
        values = {
            "student_id": entry["student_id"],
            "date": entry.get("date") or date.today(),
            "type": entry["type"],
            "surah_or_jilid": entry.get("surah_or_jilid"),
            "ayat_or_page": entry.get("ayat_or_page"),
            "notes": entry.get("notes"),
        }
        try:
            saved = self.store.insert("progress_entries", values)
        except WriteError as exc:
            _logger.exception("failed to add progress entry",
                              extra={"student_id": values["student_id"]})
            self._failed("Failed to record progress. Please try again later.")
            return SubmitOutcome(entry_saved=False, error=str(exc))

        try:
            self._recompute_summary(saved)
        except StoreError as exc:
            # The entry stays recorded; only the summary is stale.
            _logger.error(
                "failed to update progress summary",
                extra={"student_id": saved["student_id"], "type": saved["type"],
                       "error": str(exc)},
            )
            self._succeeded("Progress has been recorded, but the summary could not be updated")
            return SubmitOutcome(entry_saved=True, summary_updated=False,
                                 entry=saved, error=str(exc))

        self._succeeded("Progress has been successfully recorded")
        return SubmitOutcome(entry_saved=True, summary_updated=True, entry=saved)

    def _recompute_summary(self, entry: Row) -> Row:
        student_id = entry["student_id"]
        if entry["type"] == HAFALAN:
            current = self.store.select_one("hafalan_progress", student_id=student_id)
            previous = HafalanProgress.from_row(current) if current else None
            updated = record_hafalan_entry(previous, entry["surah_or_jilid"] or "",
                                           student_id=student_id)
            return self.store.upsert("hafalan_progress", updated.to_row())
        if entry["type"] == TILAWAH:
            current = self.store.select_one("tilawah_progress", student_id=student_id)
            previous = TilawahProgress.from_row(current) if current else None
            updated = record_tilawah_entry(previous, entry["surah_or_jilid"] or "",
                                           parse_page(entry["ayat_or_page"]),
                                           student_id=student_id)
            return self.store.upsert("tilawah_progress", updated.to_row())
        raise ValueError(f"unknown progress type {entry['type']!r}")

    # -- notifications -----------------------------------------------------

    def _succeeded(self, description: str) -> None:
        self.notify(Notification("Success", description))

    def _failed(self, description: str) -> None:
        self.notify(Notification("Error", description, variant="destructive"))
