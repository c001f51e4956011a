"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
students, teachers, courses). Repositories return SQLModel objects and
perform commits/refreshes where appropriate. Writes accept
`commit=False` so a service can group several of them into a single
transaction and finish it with `commit_session()`.
"""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from . import models
from .errors import ConstraintViolationError


def commit_session(session: Session, flush_only: bool = False) -> None:
    """Commit (or only flush) the session, turning integrity failures into
    service errors.

    The session is rolled back before the error propagates so callers
    never observe half-applied changes.
    """
    try:
        if flush_only:
            session.flush()
        else:
            session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConstraintViolationError(str(exc.orig), original=exc) from exc


class _CrudRepository:
    """Shared CRUD operations; subclasses set `model`."""
    model = None

    def __init__(self, session: Session):
        self.session = session

    def list_all(self) -> List:
        """Return every row ordered by primary key."""
        stmt = select(self.model).order_by(self.model.id)
        return list(self.session.exec(stmt).all())

    def get(self, entity_id: int):
        """Get a row by primary key or `None` if not found."""
        return self.session.get(self.model, entity_id)

    def save(self, entity, commit: bool = True):
        """Insert or update `entity` and return the managed instance.

        With `commit=False` the change is only flushed so that generated
        ids are available; the caller owns the commit.
        """
        self.session.add(entity)
        if not commit:
            commit_session(self.session, flush_only=True)
            return entity
        commit_session(self.session)
        self.session.refresh(entity)
        return entity

    def delete(self, entity, commit: bool = True) -> None:
        self.session.delete(entity)
        if commit:
            commit_session(self.session)

    def delete_by_id(self, entity_id: int, commit: bool = True) -> bool:
        """Delete a row by id; returns False when nothing matched."""
        entity = self.get(entity_id)
        if entity is None:
            return False
        self.delete(entity, commit=commit)
        return True


class UserRepository(_CrudRepository):
    """CRUD operations for `User` objects."""
    model = models.User

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get_by_email(self, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def exists_by_username(self, username: str) -> bool:
        stmt = select(models.User.id).where(models.User.username == username)
        return self.session.exec(stmt).first() is not None

    def exists_by_email(self, email: str) -> bool:
        stmt = select(models.User.id).where(models.User.email == email)
        return self.session.exec(stmt).first() is not None


class StudentRepository(_CrudRepository):
    """CRUD operations and lookups for `Student` records."""
    model = models.Student

    def get_by_email(self, email: str) -> Optional[models.Student]:
        """Return the student owning `email` or `None`."""
        stmt = select(models.Student).where(models.Student.email == email)
        return self.session.exec(stmt).first()

    def list_by_last_name(self, last_name: str) -> List[models.Student]:
        stmt = select(models.Student).where(models.Student.last_name == last_name)
        return list(self.session.exec(stmt).all())

    def list_by_full_name(self, first_name: str, last_name: str) -> List[models.Student]:
        stmt = select(models.Student).where(
            models.Student.first_name == first_name,
            models.Student.last_name == last_name
        )
        return list(self.session.exec(stmt).all())


class TeacherRepository(_CrudRepository):
    """CRUD operations and lookups for `Teacher` records."""
    model = models.Teacher

    def get_by_email(self, email: str) -> Optional[models.Teacher]:
        """Return the teacher owning `email` or `None`."""
        stmt = select(models.Teacher).where(models.Teacher.email == email)
        return self.session.exec(stmt).first()

    def search_by_name(self, name: str) -> List[models.Teacher]:
        """Case-insensitive substring match over first OR last name."""
        stmt = select(models.Teacher).where(
            models.Teacher.first_name.icontains(name, autoescape=True)
            | models.Teacher.last_name.icontains(name, autoescape=True)
        ).order_by(models.Teacher.id)
        return list(self.session.exec(stmt).all())

    def list_by_course_name(self, course_name: str) -> List[models.Teacher]:
        """Return distinct teachers teaching a course whose name contains `course_name`."""
        stmt = (
            select(models.Teacher)
            .join(models.Course, models.Course.teacher_id == models.Teacher.id)
            .where(models.Course.name.icontains(course_name, autoescape=True))
            .distinct()
            .order_by(models.Teacher.id)
        )
        return list(self.session.exec(stmt).all())


class CourseRepository(_CrudRepository):
    """CRUD operations and lookups for `Course` records."""
    model = models.Course

    def get_by_name(self, name: str) -> Optional[models.Course]:
        """Return the first course with exactly this name, or `None`."""
        stmt = select(models.Course).where(models.Course.name == name).order_by(models.Course.id)
        return self.session.exec(stmt).first()

    def list_by_teacher(self, teacher_id: int) -> List[models.Course]:
        stmt = select(models.Course).where(models.Course.teacher_id == teacher_id).order_by(models.Course.id)
        return list(self.session.exec(stmt).all())

    def count_by_teacher(self, teacher_id: int) -> int:
        """Count courses taught by `teacher_id` with a single aggregate query."""
        stmt = select(func.count()).select_from(models.Course).where(models.Course.teacher_id == teacher_id)
        return self.session.exec(stmt).one()

    def search(self, text: str) -> List[models.Course]:
        """Case-insensitive substring match over name OR description."""
        stmt = select(models.Course).where(
            models.Course.name.icontains(text, autoescape=True)
            | models.Course.description.icontains(text, autoescape=True)
        ).order_by(models.Course.id)
        return list(self.session.exec(stmt).all())
