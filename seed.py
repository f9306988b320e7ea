"""Seed the database with sample students and recorded lessons.

Useful for a local run before the UI has created any data. Lessons are
recorded through :class:`services.StudentService`, so the hafalan and
tilawah summaries are derived exactly as they are for real input.

Usage:
    python seed.py

"""

from datetime import date, timedelta

from flask import Flask

from app_logging import get_logger
from config import Config
from models import db
from services import StudentService

_logger = get_logger("hafalan.seed")

SAMPLE_STUDENTS = [
    {'name': 'Ahmad Fauzi', 'group_name': '3A', 'grade': '3', 'teacher': 'Ustadz Hasan'},
    {'name': 'Fatimah Azzahra', 'group_name': '3B', 'grade': '3', 'teacher': 'Ustadzah Aisyah'},
    {'name': 'Muhammad Rizki', 'group_name': '4A', 'grade': '4', 'teacher': 'Ustadz Hasan'},
    {'name': 'Khadijah Putri', 'group_name': '4A', 'grade': '4', 'teacher': 'Ustadzah Aisyah'},
]

# (days ago, type, surah or jilid, ayat or page) per sample student.
SAMPLE_LESSONS = [
    [(6, 'hafalan', 'An-Nas', '1-6'), (4, 'hafalan', 'Al-Falaq', '1-5'),
     (2, 'tilawah', 'Jilid 3', '24')],
    [(5, 'hafalan', 'An-Nas', '1-6'), (3, 'tilawah', 'Jilid 2', '61')],
    [(7, 'hafalan', 'An-Nas', '1-6'), (5, 'hafalan', 'Al-Falaq', '1-5'),
     (3, 'hafalan', 'Al-Ikhlas', '1-4'), (1, 'tilawah', 'Jilid 4', '12')],
    [(2, 'tilawah', 'Jilid 1', '88')],
]


def create_app() -> Flask:
    """Create a standalone Flask application for seeding.

    The API routes are not needed here, only the database.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    db.init_app(app)
    return app


def seed_data() -> None:
    """Recreate the tables and insert the sample students and lessons."""
    # Drops everything; use migrations instead against real data.
    db.drop_all()
    db.create_all()

    service = StudentService()
    today = date.today()
    for values, lessons in zip(SAMPLE_STUDENTS, SAMPLE_LESSONS):
        student = service.create_student(values)
        if student is None:
            raise SystemExit(f"could not create {values['name']}")
        for days_ago, entry_type, surah_or_jilid, ayat_or_page in lessons:
            service.submit_progress_entry({
                'student_id': student['id'],
                'date': today - timedelta(days=days_ago),
                'type': entry_type,
                'surah_or_jilid': surah_or_jilid,
                'ayat_or_page': ayat_or_page,
            })

    _logger.info("database seeded", extra={"students": len(SAMPLE_STUDENTS)})


def main() -> None:
    app = create_app()
    with app.app_context():
        seed_data()


if __name__ == '__main__':
    main()
