"""Idempotent start-up steps.

`ensure_default_admin` runs once when the application starts (and from
`scripts/init_db.py`); `seed_demo_data` is opt-in via `SEED_DEMO_DATA`.
Both can be called any number of times without creating duplicates.
"""

import logging
from typing import Optional

from sqlmodel import Session

from . import models, services
from .config import settings

logger = logging.getLogger("academy.bootstrap")


def ensure_default_admin(session: Session) -> Optional[models.User]:
    """Register the configured admin account unless it already exists.

    Returns the newly created user, or `None` when nothing was done.
    """
    auth = services.AuthService(session)
    if auth.username_exists(settings.ADMIN_USERNAME):
        return None
    admin = models.User(
        username=settings.ADMIN_USERNAME,
        password=settings.ADMIN_PASSWORD,
        email=settings.ADMIN_EMAIL,
        last_name="Admin",
    )
    created = auth.register_user(admin, models.Role.ADMIN)
    logger.info("default admin %s created", created.username)
    return created


def seed_demo_data(session: Session) -> bool:
    """Create a demo teacher, course and enrolled student.

    Skipped (returns False) when the demo teacher already exists.
    """
    teachers = services.TeacherService(session)
    if teachers.find_by_email("john.smith@example.com") is not None:
        return False
    courses = services.CourseService(session)
    students = services.StudentService(session)

    teacher = teachers.save_teacher(models.Teacher(first_name="John", last_name="Smith", email="john.smith@example.com"))
    course = courses.save_course(models.Course(name="Java Programming", description="Introduction to Java programming language"))
    courses.assign_teacher_to_course(course.id, teacher.id)
    student = students.save_student(models.Student(first_name="Jane", last_name="Doe", email="jane.doe@example.com"))
    students.enroll_student_in_course(student.id, course.id)
    logger.info(
        "demo data seeded teacher=%s course=%s student=%s",
        teacher.id, course.id, student.id,
    )
    return True
