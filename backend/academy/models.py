"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.

Both sides of every association are kept in step by the helper methods
on the model classes (`Course.add_student`, `Student.enroll_in_course`,
`Teacher.add_course`, ...). The helpers are idempotent and compare
entities by identity, so calling them repeatedly or from either side
never produces duplicate join rows.
"""

from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field, Relationship


DESCRIPTION_MAX_LENGTH = 300


def _has(collection, item) -> bool:
    return any(member is item for member in collection)


def _discard(collection, item) -> None:
    for idx, member in enumerate(collection):
        if member is item:
            del collection[idx]
            return


class Role(str, Enum):
    ADMIN = "ADMIN"
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"


class StudentCourseLink(SQLModel, table=True):
    """Join table for the Student/Course many-to-many enrollment."""
    __tablename__ = "student_course"
    student_id: Optional[int] = Field(default=None, foreign_key="student.id", primary_key=True)
    course_id: Optional[int] = Field(default=None, foreign_key="course.id", primary_key=True)


class User(SQLModel, table=True):
    """A login account.

    Fields:
    - `username`: unique login name
    - `password`: stored as submitted unless `HASH_PASSWORDS` is set;
      compared through `services.password_matches` only
    - `password_hashed`: True when `password` holds a passlib hash
    - `email`: unique across users
    - `role`: decides which derived record registration creates
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password: str
    password_hashed: bool = Field(default=False)
    email: str = Field(index=True, nullable=False, unique=True)
    last_name: Optional[str] = None
    role: Role = Field(default=Role.ADMIN)


class Student(SQLModel, table=True):
    """A student and the courses they are enrolled in."""
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str = Field(index=True)
    email: str = Field(index=True, nullable=False, unique=True)
    enrolled_courses: List["Course"] = Relationship(back_populates="students", link_model=StudentCourseLink)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def enroll_in_course(self, course: "Course") -> None:
        if not _has(self.enrolled_courses, course):
            self.enrolled_courses.append(course)
        if not _has(course.students, self):
            course.students.append(self)

    def withdraw_from_course(self, course: "Course") -> None:
        _discard(self.enrolled_courses, course)
        _discard(course.students, self)


class Teacher(SQLModel, table=True):
    """A teacher; the "one" side of the teacher/course relationship."""
    id: Optional[int] = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    email: str = Field(index=True, nullable=False, unique=True)
    courses: List["Course"] = Relationship(back_populates="teacher")

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def set_name(self, name: Optional[str]) -> None:
        """Split a display name on its first space into first/last name."""
        if name and " " in name:
            self.first_name, self.last_name = name.split(" ", 1)
        else:
            self.first_name = name
            self.last_name = ""

    def add_course(self, course: "Course") -> None:
        if not _has(self.courses, course):
            self.courses.append(course)
        if course.teacher is not self:
            course.teacher = self

    def remove_course(self, course: "Course") -> None:
        _discard(self.courses, course)
        if course.teacher is self:
            course.teacher = None


class Course(SQLModel, table=True):
    """A course with an optional teacher and a roster of students.

    `description` is bounded to `DESCRIPTION_MAX_LENGTH` characters; the
    bound is checked by `CourseService` before anything is written.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, nullable=False)
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    teacher_id: Optional[int] = Field(default=None, foreign_key="teacher.id", index=True)
    teacher: Optional[Teacher] = Relationship(back_populates="courses")
    students: List[Student] = Relationship(back_populates="enrolled_courses", link_model=StudentCourseLink)

    def add_student(self, student: Student) -> None:
        if not _has(self.students, student):
            self.students.append(student)
        if not _has(student.enrolled_courses, self):
            student.enrolled_courses.append(self)

    def remove_student(self, student: Student) -> None:
        _discard(self.students, student)
        _discard(student.enrolled_courses, self)

