"""Database models for the hafalan/tilawah progress tracker.

SQLAlchemy is used as the ORM layer. Table and column names follow the
hosted schema the UI was originally built against:

* :class:`Student` (``students``) – a pupil with a class label and teacher.
* :class:`HafalanSummary` (``hafalan_progress``) – memorisation counters,
  at most one row per student.
* :class:`TilawahSummary` (``tilawah_progress``) – recitation primer
  position, at most one row per student.
* :class:`ProgressEntry` (``progress_entries``) – the append-only log of
  recorded lessons from which the two summaries are derived.

Application code does not query these classes directly; it goes through
:class:`store.RowStore`, which exchanges plain dictionaries.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from flask_sqlalchemy import SQLAlchemy


# Initialised with the Flask application in ``app.py`` via ``db.init_app(app)``.
db = SQLAlchemy()


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RowMixin:
    """Expose a model instance as a ``{column: value}`` dictionary."""

    def to_row(self) -> Dict[str, Any]:
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


class Student(RowMixin, db.Model):
    """A pupil followed by a teacher and visible to parents."""

    __tablename__ = 'students'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(120), nullable=False)
    photo = db.Column(db.Text, nullable=False, default='')
    group_name = db.Column(db.String(50), nullable=False)
    grade = db.Column(db.String(20), nullable=True)
    teacher = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Student {self.name}>"


class HafalanSummary(RowMixin, db.Model):
    """Memorisation summary: distinct surahs counted so far and the latest one."""

    __tablename__ = 'hafalan_progress'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    student_id = db.Column(db.String(36), db.ForeignKey('students.id'),
                           unique=True, nullable=False)
    total_surah = db.Column(db.Integer, nullable=False, default=0)
    last_surah = db.Column(db.String(50), nullable=True)
    percentage = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<HafalanSummary student={self.student_id} total={self.total_surah}>"


class TilawahSummary(RowMixin, db.Model):
    """Recitation summary: current jilid (primer volume) and page."""

    __tablename__ = 'tilawah_progress'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    student_id = db.Column(db.String(36), db.ForeignKey('students.id'),
                           unique=True, nullable=False)
    jilid = db.Column(db.String(50), nullable=True)
    page = db.Column(db.Integer, nullable=True)
    percentage = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<TilawahSummary student={self.student_id} jilid={self.jilid} page={self.page}>"


class ProgressEntry(RowMixin, db.Model):
    """One recorded lesson.

    ``surah_or_jilid`` and ``ayat_or_page`` are read according to ``type``:
    a surah name and ayat range for ``hafalan``, a jilid and page for
    ``tilawah``.
    """

    __tablename__ = 'progress_entries'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    student_id = db.Column(db.String(36), db.ForeignKey('students.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(10), nullable=False)  # hafalan, tilawah
    surah_or_jilid = db.Column(db.String(50), nullable=True)
    ayat_or_page = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (f"<ProgressEntry student={self.student_id} date={self.date} "
                f"type={self.type}>")


TABLES = {
    model.__tablename__: model
    for model in (Student, HafalanSummary, TilawahSummary, ProgressEntry)
}
