"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. The `from_entity` constructors map the
SQLModel tables to responses; passwords are never part of a response.
"""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from . import models


def _not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value


class RegisterIn(BaseModel):
    """Payload for the registration endpoint."""
    username: str
    password: str = Field(min_length=6)
    email: EmailStr
    last_name: Optional[str] = None
    role: models.Role = models.Role.ADMIN

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        return _not_blank(value)


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    username: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    last_name: Optional[str] = None
    role: models.Role

    @classmethod
    def from_entity(cls, user: models.User) -> "UserOut":
        return cls(id=user.id, username=user.username, email=user.email, last_name=user.last_name, role=user.role)


class PersonIn(BaseModel):
    """Shared fields of student and teacher payloads."""
    first_name: str
    last_name: str
    email: EmailStr

    @field_validator("first_name", "last_name")
    @classmethod
    def check_names(cls, value: str) -> str:
        return _not_blank(value)


class StudentIn(PersonIn):
    pass


class TeacherIn(PersonIn):
    pass


class StudentOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    full_name: str
    email: str
    enrolled_course_ids: List[int] = []

    @classmethod
    def from_entity(cls, student: models.Student) -> "StudentOut":
        return cls(
            id=student.id,
            first_name=student.first_name,
            last_name=student.last_name,
            full_name=student.full_name,
            email=student.email,
            enrolled_course_ids=sorted(c.id for c in student.enrolled_courses),
        )


class TeacherOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    name: str
    email: str
    course_ids: List[int] = []
    course_count: Optional[int] = None

    @classmethod
    def from_entity(cls, teacher: models.Teacher, course_count: Optional[int] = None) -> "TeacherOut":
        return cls(
            id=teacher.id,
            first_name=teacher.first_name,
            last_name=teacher.last_name,
            name=teacher.name,
            email=teacher.email,
            course_ids=[c.id for c in teacher.courses],
            course_count=course_count,
        )


class CourseIn(BaseModel):
    """Create/update payload; `teacher_id` assigns a teacher after saving."""
    name: str
    description: Optional[str] = Field(default=None, max_length=models.DESCRIPTION_MAX_LENGTH)
    teacher_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        return _not_blank(value)


class CourseOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    teacher_id: Optional[int] = None
    teacher_name: Optional[str] = None
    student_ids: List[int] = []

    @classmethod
    def from_entity(cls, course: models.Course) -> "CourseOut":
        teacher = course.teacher
        return cls(
            id=course.id,
            name=course.name,
            description=course.description,
            teacher_id=teacher.id if teacher else None,
            teacher_name=teacher.name if teacher else None,
            student_ids=sorted(s.id for s in course.students),
        )


class TeacherAssignmentIn(BaseModel):
    teacher_id: int
