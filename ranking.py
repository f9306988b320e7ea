"""Leaderboard ordering of students by memorisation progress."""

from typing import Iterable, List, Tuple

from aggregation import StudentWithProgress
from surahs import rank_of


def progress_key(student: StudentWithProgress) -> Tuple[int, int]:
    hafalan = student.hafalan_progress
    return (-hafalan.percentage, -rank_of(hafalan.last_surah))


def rank_by_progress(students: Iterable[StudentWithProgress]) -> List[StudentWithProgress]:
    """Sort by hafalan percentage, highest first.

    Ties go to the student whose last surah ranks higher (further towards
    An-Nas); students tied on both keep their input order.
    """
    return sorted(students, key=progress_key)
