"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and keep the Course/Student/Teacher associations consistent. Services
are intentionally thin: they perform validation, execute domain logic
and persist aggregates via repositories.

Every operation that touches two entities mutates both sides of the
relationship inside the request's session and commits exactly once, so
a failure rolls the whole operation back.
"""

import hmac
import logging
from typing import List, Optional, Tuple

from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import (
    DuplicateEmailError,
    DuplicateUsernameError,
    NotFoundError,
    ValidationError,
)
from .repositories import commit_session

logger = logging.getLogger("academy.services")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def password_matches(plain: Optional[str], stored: Optional[str], hashed: bool = False) -> bool:
    """Return True when `plain` is the password recorded as `stored`.

    `hashed` tells how `stored` was written: plaintext values are
    compared byte-exact (case-sensitive), passlib hashes are verified
    through `PWD_CTX`. This is the only place passwords are compared.
    """
    if plain is None or stored is None:
        return False
    if hashed:
        return PWD_CTX.verify(plain, stored)
    return hmac.compare_digest(plain.encode("utf-8"), stored.encode("utf-8"))


def derive_names(username: str, last_name: Optional[str], role: models.Role) -> Tuple[str, str]:
    """Return the (first_name, last_name) of the record derived from a user.

    A non-empty `last_name` wins and the raw username becomes the first
    name. Otherwise `first.last` usernames are split on the first dot;
    anything else keeps the username as first name and falls back to
    "Student" or "Teacher" as last name.
    """
    if last_name:
        return username, last_name
    first, sep, rest = username.partition(".")
    if sep and first and rest:
        return first, rest
    return username, role.value.capitalize()


def _require(repo, entity: str, entity_id: int):
    found = repo.get(entity_id)
    if found is None:
        raise NotFoundError(entity, entity_id)
    return found


def _require_text(value: Optional[str], field: str) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(field, "must not be blank")


def _attach_teacher(course: models.Course, teacher: models.Teacher) -> None:
    # a course is listed under one teacher only
    previous = course.teacher
    if previous is not None and previous is not teacher:
        previous.remove_course(course)
    teacher.add_course(course)


class CourseService:
    """Course CRUD plus roster and teacher assignment from the course side."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.teacher_repo = repositories.TeacherRepository(session)
        self.student_repo = repositories.StudentRepository(session)

    def list_courses(self) -> List[models.Course]:
        return self.course_repo.list_all()

    def get_course(self, course_id: int) -> models.Course:
        """Fetch a course or raise `NotFoundError`."""
        return _require(self.course_repo, "Course", course_id)

    def save_course(self, course: models.Course, teacher_id: Optional[int] = None) -> models.Course:
        """Validate and insert-or-update a course.

        A given `teacher_id` is resolved first and assigned in the same
        commit, so an unknown teacher leaves nothing written.
        """
        _require_text(course.name, "name")
        if course.description is not None and len(course.description) > models.DESCRIPTION_MAX_LENGTH:
            raise ValidationError("description", f"must be at most {models.DESCRIPTION_MAX_LENGTH} characters")
        if teacher_id is not None:
            _attach_teacher(course, _require(self.teacher_repo, "Teacher", teacher_id))
        return self.course_repo.save(course)

    def delete_course(self, course_id: int) -> None:
        """Remove a course after unwinding its roster and teacher link."""
        course = self.get_course(course_id)
        for student in list(course.students):
            course.remove_student(student)
        if course.teacher is not None:
            course.teacher.remove_course(course)
        self.course_repo.delete(course)
        logger.info("course deleted id=%s", course_id)

    def find_by_name(self, name: str) -> Optional[models.Course]:
        return self.course_repo.get_by_name(name)

    def search_courses(self, text: str) -> List[models.Course]:
        """Case-insensitive substring search over course name and description."""
        return self.course_repo.search(text)

    def courses_by_teacher(self, teacher_id: int) -> List[models.Course]:
        return self.course_repo.list_by_teacher(teacher_id)

    def enrolled_students(self, course_id: int) -> List[models.Student]:
        return list(self.get_course(course_id).students)

    def assign_teacher_to_course(self, course_id: int, teacher_id: int) -> models.Course:
        """Make `teacher_id` the teacher of `course_id`.

        The course is detached from its previous teacher's list first so
        a course never shows up under two teachers.
        """
        course = self.get_course(course_id)
        _attach_teacher(course, _require(self.teacher_repo, "Teacher", teacher_id))
        saved = self.course_repo.save(course)
        logger.info("teacher %s assigned to course %s", teacher_id, course_id)
        return saved

    def add_student_to_course(self, course_id: int, student_id: int) -> models.Course:
        course = self.get_course(course_id)
        student = _require(self.student_repo, "Student", student_id)
        course.add_student(student)
        saved = self.course_repo.save(course)
        logger.info("student %s added to course %s", student_id, course_id)
        return saved

    def remove_student_from_course(self, course_id: int, student_id: int) -> models.Course:
        course = self.get_course(course_id)
        student = _require(self.student_repo, "Student", student_id)
        course.remove_student(student)
        saved = self.course_repo.save(course)
        logger.info("student %s removed from course %s", student_id, course_id)
        return saved


class StudentService:
    """Student CRUD plus enrollment entered from the student side."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def list_students(self) -> List[models.Student]:
        return self.student_repo.list_all()

    def get_student(self, student_id: int) -> models.Student:
        return _require(self.student_repo, "Student", student_id)

    def save_student(self, student: models.Student) -> models.Student:
        """Validate required fields and insert-or-update the student.

        Email uniqueness is left to the store; a clash surfaces as
        `ConstraintViolationError`.
        """
        _require_text(student.first_name, "first_name")
        _require_text(student.last_name, "last_name")
        _require_text(student.email, "email")
        return self.student_repo.save(student)

    def delete_student(self, student_id: int) -> None:
        student = self.get_student(student_id)
        for course in list(student.enrolled_courses):
            student.withdraw_from_course(course)
        self.student_repo.delete(student)
        logger.info("student deleted id=%s", student_id)

    def find_by_email(self, email: str) -> Optional[models.Student]:
        return self.student_repo.get_by_email(email)

    def find_by_last_name(self, last_name: str) -> List[models.Student]:
        return self.student_repo.list_by_last_name(last_name)

    def find_by_full_name(self, first_name: str, last_name: str) -> List[models.Student]:
        return self.student_repo.list_by_full_name(first_name, last_name)

    def enroll_student_in_course(self, student_id: int, course_id: int) -> models.Student:
        student = self.get_student(student_id)
        course = _require(self.course_repo, "Course", course_id)
        student.enroll_in_course(course)
        saved = self.student_repo.save(student)
        logger.info("student %s enrolled in course %s", student_id, course_id)
        return saved

    def withdraw_student_from_course(self, student_id: int, course_id: int) -> models.Student:
        student = self.get_student(student_id)
        course = _require(self.course_repo, "Course", course_id)
        student.withdraw_from_course(course)
        saved = self.student_repo.save(student)
        logger.info("student %s withdrawn from course %s", student_id, course_id)
        return saved

    def student_courses(self, student_id: int) -> List[models.Course]:
        return list(self.get_student(student_id).enrolled_courses)


class TeacherService:
    """Teacher CRUD, lookups and course assignment from the teacher side."""
    def __init__(self, session: Session):
        self.session = session
        self.teacher_repo = repositories.TeacherRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def list_teachers(self) -> List[models.Teacher]:
        return self.teacher_repo.list_all()

    def get_teacher(self, teacher_id: int) -> models.Teacher:
        return _require(self.teacher_repo, "Teacher", teacher_id)

    def save_teacher(self, teacher: models.Teacher) -> models.Teacher:
        _require_text(teacher.first_name, "first_name")
        _require_text(teacher.last_name, "last_name")
        _require_text(teacher.email, "email")
        return self.teacher_repo.save(teacher)

    def delete_teacher(self, teacher_id: int) -> None:
        """Detach every course of the teacher, then delete the teacher.

        Courses are kept; their teacher reference is cleared. Detaching
        and deleting share one commit, so either all of it is applied or
        none of it is.
        """
        teacher = self.get_teacher(teacher_id)
        detached = list(teacher.courses)
        for course in detached:
            teacher.remove_course(course)
            self.course_repo.save(course, commit=False)
        self.teacher_repo.delete(teacher, commit=False)
        commit_session(self.session)
        logger.info("teacher deleted id=%s detached_courses=%d", teacher_id, len(detached))

    def find_by_email(self, email: str) -> Optional[models.Teacher]:
        return self.teacher_repo.get_by_email(email)

    def find_by_name(self, name: str) -> List[models.Teacher]:
        """All teachers whose first or last name contains `name` (any case)."""
        return self.teacher_repo.search_by_name(name)

    def find_by_course_name(self, course_name: str) -> List[models.Teacher]:
        return self.teacher_repo.list_by_course_name(course_name)

    def teacher_courses(self, teacher_id: int) -> List[models.Course]:
        self.get_teacher(teacher_id)
        return self.course_repo.list_by_teacher(teacher_id)

    def count_courses(self, teacher_id: int) -> int:
        return self.course_repo.count_by_teacher(teacher_id)

    def assign_course_to_teacher(self, teacher_id: int, course_id: int) -> models.Teacher:
        teacher = self.get_teacher(teacher_id)
        course = _require(self.course_repo, "Course", course_id)
        _attach_teacher(course, teacher)
        saved = self.teacher_repo.save(teacher)
        logger.info("course %s assigned to teacher %s", course_id, teacher_id)
        return saved

    def remove_course_from_teacher(self, teacher_id: int, course_id: int) -> models.Teacher:
        """Unassign a course; a course taught by someone else is left alone."""
        teacher = self.get_teacher(teacher_id)
        course = _require(self.course_repo, "Course", course_id)
        teacher.remove_course(course)
        saved = self.teacher_repo.save(teacher)
        logger.info("course %s removed from teacher %s", course_id, teacher_id)
        return saved


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.student_repo = repositories.StudentRepository(session)
        self.teacher_repo = repositories.TeacherRepository(session)

    def authenticate(self, username: str, password: str) -> Optional[models.User]:
        """Verify credentials and return the matching `User`.

        Returns `None` if authentication fails; no error is raised.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not password_matches(password, user.password, user.password_hashed):
            return None
        return user

    def register_user(self, user: models.User, role: models.Role = models.Role.ADMIN) -> models.User:
        """Persist a new user and, for STUDENT/TEACHER, its derived record.

        All duplicate checks run before anything is written; the user and
        the derived record are committed together.
        """
        if self.user_repo.exists_by_username(user.username):
            raise DuplicateUsernameError(user.username)
        if self.user_repo.exists_by_email(user.email):
            raise DuplicateEmailError(user.email)

        derived = None
        if role == models.Role.STUDENT:
            if self.student_repo.get_by_email(user.email) is not None:
                raise DuplicateEmailError(user.email, scope="student")
            first, last = derive_names(user.username, user.last_name, role)
            derived = models.Student(first_name=first, last_name=last, email=user.email)
        elif role == models.Role.TEACHER:
            if self.teacher_repo.get_by_email(user.email) is not None:
                raise DuplicateEmailError(user.email, scope="teacher")
            first, last = derive_names(user.username, user.last_name, role)
            derived = models.Teacher(first_name=first, last_name=last, email=user.email)

        user.role = role
        if settings.HASH_PASSWORDS:
            user.password = PWD_CTX.hash(user.password)
            user.password_hashed = True
        self.session.add(user)
        if derived is not None:
            self.session.add(derived)
        commit_session(self.session)
        self.session.refresh(user)
        logger.info("registered user %s role=%s", user.username, role.value)
        return user

    def find_by_username(self, username: str) -> Optional[models.User]:
        return self.user_repo.get_by_username(username)

    def find_by_email(self, email: str) -> Optional[models.User]:
        return self.user_repo.get_by_email(email)

    def username_exists(self, username: str) -> bool:
        return self.user_repo.exists_by_username(username)

    def email_exists(self, email: str) -> bool:
        return self.user_repo.exists_by_email(email)
