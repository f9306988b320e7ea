"""Filtering of the student list by name, class and teacher."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

from aggregation import StudentWithProgress


@dataclass
class StudentFilterState:
    """Filter selections for one browsing session.

    ``selected_grades`` holds class labels (matched against
    ``StudentWithProgress.group``) and ``selected_groups`` holds teacher
    names. ``show_filters`` only controls whether the panel is open.
    """

    search_term: str = ""
    selected_grades: List[str] = field(default_factory=list)
    selected_groups: List[str] = field(default_factory=list)
    show_filters: bool = False

    def toggle_grade(self, grade: str) -> None:
        _toggle(self.selected_grades, grade)

    def toggle_group(self, group: str) -> None:
        _toggle(self.selected_groups, group)

    def reset(self) -> None:
        self.search_term = ""
        self.selected_grades = []
        self.selected_groups = []


def _toggle(selection: List[str], value: str) -> None:
    if value in selection:
        selection.remove(value)
    else:
        selection.append(value)


def matches(student: StudentWithProgress, state: StudentFilterState) -> bool:
    if state.search_term and state.search_term.lower() not in student.name.lower():
        return False
    if state.selected_grades and student.group not in state.selected_grades:
        return False
    if state.selected_groups and student.teacher not in state.selected_groups:
        return False
    return True


def filter_students(students: Iterable[StudentWithProgress],
                    state: StudentFilterState) -> List[StudentWithProgress]:
    """Keep the students passing every active filter, in their original order.

    An empty search term or an empty selection does not filter on that
    dimension.
    """
    return [student for student in students if matches(student, state)]


def filter_options(students: Iterable[StudentWithProgress]) -> Tuple[List[str], List[str]]:
    """Return the distinct class labels and teacher names, in first-seen order.

    Blank class labels are left out.
    """
    grades: List[str] = []
    teachers: List[str] = []
    for student in students:
        if student.group and student.group not in grades:
            grades.append(student.group)
        if student.teacher not in teachers:
            teachers.append(student.teacher)
    return grades, teachers
