import pytest

from schooladmin.errors import ConflictError, NotFoundError
from schooladmin.models import TeacherAssignment
from schooladmin.services import teaching


@pytest.fixture
def setup(make):
    year = make.year(is_current=True)
    teacher = teaching.create_teacher("Paul", "Mbarga", "690000000")
    subject = teaching.create_subject("Mathématiques", "math")
    class_subjects = [teaching.add_class_subject(make.school_class().id, subject.id, 4) for _ in range(3)]
    return year, teacher, class_subjects


def test_subject_codes_are_unique(setup):
    with pytest.raises(ConflictError) as exc:
        teaching.create_subject("Maths", "MATH")
    assert exc.value.code == "DUPLICATE_CODE"


def test_assign_twice_is_a_conflict(setup):
    year, teacher, class_subjects = setup
    teaching.assign(teacher.id, class_subjects[0].id, year.id)

    with pytest.raises(ConflictError) as exc:
        teaching.assign(teacher.id, class_subjects[0].id, year.id)

    assert exc.value.code == "DUPLICATE_ASSIGNMENT"
    assert TeacherAssignment.query.count() == 1


def test_assign_many_reports_the_duplicate_and_keeps_the_rest(setup):
    year, teacher, class_subjects = setup
    teaching.assign(teacher.id, class_subjects[0].id, year.id)

    result = teaching.assign_many(teacher.id, [cs.id for cs in class_subjects] + [999], year.id)

    assert result.assigned_count == 2
    assert len(result.errors) == 2
    assert result.errors[0].startswith(f"Matière {class_subjects[0].id}: ")
    assigned = {a.class_subject_id for a in teaching.list_for_teacher(teacher.id, year.id)}
    assert assigned == {cs.id for cs in class_subjects}


def test_assign_many_unknown_teacher(setup):
    year, _, class_subjects = setup
    with pytest.raises(NotFoundError):
        teaching.assign_many(404, [class_subjects[0].id], year.id)


def test_available_subjects_exclude_active_assignments(setup):
    year, teacher, class_subjects = setup
    assignment = teaching.assign(teacher.id, class_subjects[0].id, year.id)

    available = teaching.available_class_subjects(teacher.id, year.id)
    assert [cs.id for cs in available] == [cs.id for cs in class_subjects[1:]]

    teaching.toggle_status(assignment.id)
    assert len(teaching.available_class_subjects(teacher.id, year.id)) == 3


def test_delete_assignment(setup):
    year, teacher, class_subjects = setup
    assignment = teaching.assign(teacher.id, class_subjects[0].id, year.id)

    teaching.delete(assignment.id)

    assert teaching.list_for_teacher(teacher.id) == []
    with pytest.raises(NotFoundError):
        teaching.delete(assignment.id)
