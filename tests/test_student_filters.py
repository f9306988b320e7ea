from aggregation import StudentWithProgress
from student_filters import StudentFilterState, filter_options, filter_students


def _student(id, name, group, teacher):
    return StudentWithProgress(id=id, name=name, group=group, teacher=teacher)


AHMAD = _student('1', 'Ahmad', '3A', 'Hasan')
FATIMA = _student('2', 'Fatima', '3B', 'Aisha')
STUDENTS = [AHMAD, FATIMA]


def test_empty_state_keeps_everyone_in_order():
    assert filter_students(STUDENTS, StudentFilterState()) == STUDENTS


def test_search_is_case_insensitive_substring():
    assert filter_students(STUDENTS, StudentFilterState(search_term='ahm')) == [AHMAD]
    assert filter_students(STUDENTS, StudentFilterState(search_term='TIM')) == [FATIMA]


def test_grade_selection_matches_class_label():
    assert filter_students(STUDENTS, StudentFilterState(selected_grades=['3B'])) == [FATIMA]


def test_teacher_selection():
    state = StudentFilterState(selected_groups=['Hasan', 'Aisha'])
    assert filter_students(STUDENTS, state) == STUDENTS
    assert filter_students(STUDENTS, StudentFilterState(selected_groups=['Hasan'])) == [AHMAD]


def test_filters_combine_with_and():
    state = StudentFilterState(search_term='ahm', selected_grades=['3B'])
    assert filter_students(STUDENTS, state) == []


def test_no_match_returns_empty_list():
    state = StudentFilterState(search_term='zzz', selected_grades=['9Z'], selected_groups=['Nobody'])
    assert filter_students(STUDENTS, state) == []
    assert filter_students([], state) == []


def test_filter_is_stable():
    students = [_student(str(i), f'Ahmad {i}', '3A', 'Hasan') for i in range(5)]
    result = filter_students(reversed(students), StudentFilterState(search_term='ahmad'))
    assert [s.id for s in result] == ['4', '3', '2', '1', '0']


def test_toggle_and_reset():
    state = StudentFilterState(show_filters=True)
    state.toggle_grade('3A')
    state.toggle_grade('3B')
    state.toggle_grade('3A')
    state.toggle_group('Hasan')
    state.search_term = 'ahm'
    assert state.selected_grades == ['3B']
    assert state.selected_groups == ['Hasan']

    state.reset()
    assert state == StudentFilterState(show_filters=True)


def test_filter_options_are_distinct_in_first_seen_order():
    students = STUDENTS + [_student('3', 'Umar', '3A', 'Hasan'), _student('4', 'Zaid', '', 'Yusuf')]
    grades, teachers = filter_options(students)
    assert grades == ['3A', '3B']
    assert teachers == ['Hasan', 'Aisha', 'Yusuf']
