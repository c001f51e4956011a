import pytest
from sqlmodel import Session

from academy import services
from academy.database import engine
from academy.errors import ConstraintViolationError, NotFoundError, ValidationError
from academy.models import Course, Student, Teacher


def _teacher(session, first="Ada", last="Lovelace", email="ada@example.com"):
    return services.TeacherService(session).save_teacher(Teacher(first_name=first, last_name=last, email=email))


def _student(session, first="Jane", last="Doe", email="jane.doe@example.com"):
    return services.StudentService(session).save_student(Student(first_name=first, last_name=last, email=email))


def _course(session, name="Java Programming", description=None):
    return services.CourseService(session).save_course(Course(name=name, description=description))


def test_add_and_remove_student_from_course(session):
    course = _course(session)
    student = _student(session)
    svc = services.CourseService(session)

    svc.add_student_to_course(course.id, student.id)
    assert [s.id for s in course.students] == [student.id]
    assert [c.id for c in student.enrolled_courses] == [course.id]

    svc.remove_student_from_course(course.id, student.id)
    assert course.students == []
    assert student.enrolled_courses == []


def test_enroll_from_student_side_is_visible_from_a_new_session(session):
    course = _course(session)
    student = _student(session)
    services.StudentService(session).enroll_student_in_course(student.id, course.id)

    with Session(engine) as other:
        roster = services.CourseService(other).enrolled_students(course.id)
        assert [s.email for s in roster] == ["jane.doe@example.com"]

    services.StudentService(session).withdraw_student_from_course(student.id, course.id)
    with Session(engine) as other:
        assert services.CourseService(other).enrolled_students(course.id) == []


def test_enrolling_twice_keeps_a_single_enrollment(session):
    course = _course(session)
    student = _student(session)
    services.CourseService(session).add_student_to_course(course.id, student.id)
    services.StudentService(session).enroll_student_in_course(student.id, course.id)
    assert len(services.StudentService(session).student_courses(student.id)) == 1


def test_association_with_missing_ids_raises_not_found(session):
    course = _course(session)
    student = _student(session)
    svc = services.CourseService(session)
    with pytest.raises(NotFoundError):
        svc.add_student_to_course(course.id, 999)
    with pytest.raises(NotFoundError):
        svc.remove_student_from_course(999, student.id)
    with pytest.raises(NotFoundError):
        svc.assign_teacher_to_course(course.id, 999)
    with pytest.raises(NotFoundError):
        services.StudentService(session).enroll_student_in_course(student.id, 999)
    with pytest.raises(NotFoundError):
        services.TeacherService(session).delete_teacher(999)


def test_assign_teacher_sets_both_sides(session):
    course = _course(session)
    teacher = _teacher(session)
    services.CourseService(session).assign_teacher_to_course(course.id, teacher.id)
    assert course.teacher.id == teacher.id
    assert [c.id for c in teacher.courses] == [course.id]


def test_reassigning_a_course_detaches_it_from_the_previous_teacher(session):
    course = _course(session)
    first = _teacher(session)
    second = _teacher(session, first="Alan", last="Turing", email="alan@example.com")
    svc = services.CourseService(session)
    svc.assign_teacher_to_course(course.id, first.id)
    svc.assign_teacher_to_course(course.id, second.id)

    teachers = services.TeacherService(session)
    assert teachers.teacher_courses(first.id) == []
    assert [c.id for c in teachers.teacher_courses(second.id)] == [course.id]
    assert first.courses == []


def test_save_course_with_teacher_is_a_single_commit(session, monkeypatch):
    teacher = _teacher(session)
    commits = []
    real_commit = session.commit

    def counting_commit():
        commits.append(1)
        real_commit()

    monkeypatch.setattr(session, "commit", counting_commit)
    course = services.CourseService(session).save_course(Course(name="Algebra"), teacher_id=teacher.id)
    assert len(commits) == 1
    assert course.teacher_id == teacher.id
    assert [c.id for c in teacher.courses] == [course.id]


def test_save_course_with_unknown_teacher_writes_nothing(session):
    with pytest.raises(NotFoundError):
        services.CourseService(session).save_course(Course(name="Algebra"), teacher_id=999)
    with Session(engine) as other:
        assert services.CourseService(other).list_courses() == []


def test_save_course_moves_course_to_the_given_teacher(session):
    first = _teacher(session)
    second = _teacher(session, first="Alan", last="Turing", email="alan@example.com")
    svc = services.CourseService(session)
    course = svc.save_course(Course(name="Algebra"), teacher_id=first.id)
    course.description = "Groups and rings"
    svc.save_course(course, teacher_id=second.id)
    assert first.courses == []
    assert [c.id for c in svc.courses_by_teacher(second.id)] == [course.id]
    assert svc.courses_by_teacher(first.id) == []


def test_delete_teacher_detaches_courses(session):
    teacher = _teacher(session)
    c1 = _course(session, "Java Programming")
    c2 = _course(session, "Advanced Java")
    svc = services.CourseService(session)
    svc.assign_teacher_to_course(c1.id, teacher.id)
    svc.assign_teacher_to_course(c2.id, teacher.id)
    teacher_id = teacher.id

    services.TeacherService(session).delete_teacher(teacher_id)

    with Session(engine) as other:
        assert other.get(Teacher, teacher_id) is None
        assert other.get(Course, c1.id).teacher is None
        assert other.get(Course, c2.id).teacher is None


def test_delete_teacher_is_all_or_nothing(session, monkeypatch):
    teacher = _teacher(session)
    c1 = _course(session, "Java Programming")
    c2 = _course(session, "Advanced Java")
    svc = services.CourseService(session)
    svc.assign_teacher_to_course(c1.id, teacher.id)
    svc.assign_teacher_to_course(c2.id, teacher.id)
    teacher_id, c1_id, c2_id = teacher.id, c1.id, c2.id

    def failing_commit(sess, flush_only=False):
        sess.rollback()
        raise ConstraintViolationError("simulated failure")

    monkeypatch.setattr(services, "commit_session", failing_commit)
    with pytest.raises(ConstraintViolationError):
        services.TeacherService(session).delete_teacher(teacher_id)

    with Session(engine) as other:
        assert other.get(Teacher, teacher_id) is not None
        assert other.get(Course, c1_id).teacher_id == teacher_id
        assert other.get(Course, c2_id).teacher_id == teacher_id


def test_delete_student_removes_it_from_rosters(session):
    course = _course(session)
    student = _student(session)
    services.CourseService(session).add_student_to_course(course.id, student.id)
    services.StudentService(session).delete_student(student.id)
    assert services.CourseService(session).enrolled_students(course.id) == []


def test_delete_course_unwinds_teacher_and_students(session):
    course = _course(session)
    student = _student(session)
    teacher = _teacher(session)
    svc = services.CourseService(session)
    svc.add_student_to_course(course.id, student.id)
    svc.assign_teacher_to_course(course.id, teacher.id)

    svc.delete_course(course.id)

    assert services.StudentService(session).student_courses(student.id) == []
    assert services.TeacherService(session).count_courses(teacher.id) == 0
    with pytest.raises(NotFoundError):
        svc.get_course(course.id)


def test_count_courses_matches_course_list(session):
    teacher = _teacher(session)
    svc = services.CourseService(session)
    for name in ("Java Programming", "Advanced Java", "Python Programming"):
        svc.assign_teacher_to_course(_course(session, name).id, teacher.id)
    teachers = services.TeacherService(session)
    assert teachers.count_courses(teacher.id) == 3
    assert teachers.count_courses(teacher.id) == len(teachers.get_teacher(teacher.id).courses)
    assert [c.name for c in svc.courses_by_teacher(teacher.id)] == ["Java Programming", "Advanced Java", "Python Programming"]


def test_teacher_side_assignment_and_removal(session):
    teacher = _teacher(session)
    other = _teacher(session, first="Alan", last="Turing", email="alan@example.com")
    course = _course(session)
    teachers = services.TeacherService(session)

    teachers.assign_course_to_teacher(teacher.id, course.id)
    assert course.teacher_id == teacher.id

    # removing from someone who does not teach it is a no-op
    teachers.remove_course_from_teacher(other.id, course.id)
    assert course.teacher_id == teacher.id

    teachers.remove_course_from_teacher(teacher.id, course.id)
    assert course.teacher_id is None
    assert teachers.count_courses(teacher.id) == 0


def test_search_courses_is_case_insensitive_over_name_and_description(session):
    _course(session, "Java Programming")
    _course(session, "Advanced Java")
    _course(session, "Python Programming")
    _course(session, "Systems", description="Low level JAVA internals")
    found = {c.name for c in services.CourseService(session).search_courses("java")}
    assert found == {"Java Programming", "Advanced Java", "Systems"}


def test_find_course_by_exact_name(session):
    _course(session, "Java Programming")
    svc = services.CourseService(session)
    assert svc.find_by_name("Java Programming").name == "Java Programming"
    assert svc.find_by_name("java") is None


def test_teacher_name_search_matches_first_or_last_name(session):
    _teacher(session, "Ada", "Lovelace", "ada@example.com")
    _teacher(session, "Alan", "Turing", "alan@example.com")
    _teacher(session, "Grace", "Hopper", "grace@example.com")
    svc = services.TeacherService(session)
    assert {t.email for t in svc.find_by_name("a")} == {"ada@example.com", "alan@example.com", "grace@example.com"}
    assert [t.email for t in svc.find_by_name("TURING")] == ["alan@example.com"]
    assert svc.find_by_name("zzz") == []


def test_find_teachers_by_course_name(session):
    ada = _teacher(session, "Ada", "Lovelace", "ada@example.com")
    _teacher(session, "Alan", "Turing", "alan@example.com")
    svc = services.CourseService(session)
    svc.assign_teacher_to_course(_course(session, "Java Programming").id, ada.id)
    svc.assign_teacher_to_course(_course(session, "Advanced Java").id, ada.id)
    found = services.TeacherService(session).find_by_course_name("java")
    assert [t.email for t in found] == ["ada@example.com"]


def test_student_lookups(session):
    _student(session, "Jane", "Doe", "jane@example.com")
    _student(session, "John", "Doe", "john@example.com")
    svc = services.StudentService(session)
    assert svc.find_by_email("john@example.com").first_name == "John"
    assert svc.find_by_email("nobody@example.com") is None
    assert len(svc.find_by_last_name("Doe")) == 2
    assert [s.email for s in svc.find_by_full_name("Jane", "Doe")] == ["jane@example.com"]


def test_course_validation(session):
    svc = services.CourseService(session)
    with pytest.raises(ValidationError):
        svc.save_course(Course(name="   "))
    with pytest.raises(ValidationError):
        svc.save_course(Course(name="Long", description="x" * 301))
    assert svc.save_course(Course(name="Short", description="x" * 300)).id is not None


def test_duplicate_student_email_is_a_constraint_violation(session):
    _student(session, email="dup@example.com")
    with pytest.raises(ConstraintViolationError):
        _student(session, first="Other", email="dup@example.com")
    # the session was rolled back and stays usable
    assert len(services.StudentService(session).list_students()) == 1
