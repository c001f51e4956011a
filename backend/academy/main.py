"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the academy records backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Every route except `/`, `/health`
and `/auth/*` requires a logged-in session.

Endpoints implemented:
- POST /auth/register, POST /auth/login, POST /auth/logout
- GET /dashboard
- /courses: CRUD, search, roster and teacher assignment
- /students: CRUD, enrollment and withdrawal
- /teachers: CRUD, name search, course assignment
- GET /health
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from sqlmodel import Session
from starlette.middleware.sessions import SessionMiddleware

from . import errors, models, services
from .auth import end_session, get_current_user, start_session
from .bootstrap import ensure_default_admin, seed_demo_data
from .config import settings
from .database import create_db_and_tables, engine, get_session
from .schemas import (
    CourseIn,
    CourseOut,
    LoginIn,
    RegisterIn,
    StudentIn,
    StudentOut,
    TeacherAssignmentIn,
    TeacherIn,
    TeacherOut,
    UserOut,
)

logger = logging.getLogger("academy.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and ensure the default admin once per process start."""
    create_db_and_tables()
    with Session(engine) as session:
        ensure_default_admin(session)
        if settings.SEED_DEMO_DATA:
            seed_demo_data(session)
    yield


app = FastAPI(title="Academy Records API", lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=settings.SESSION_SECRET, https_only=settings.ENV != "dev")

# Wide-open CORS for local HTML testers in dev.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
            ensure_ascii=True,
        ),
    )
    return response


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    logger.warning("request rejected status=%s error=%s: %s", status_code, type(exc).__name__, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(errors.NotFoundError)
async def not_found_handler(request: Request, exc: errors.NotFoundError):
    return _error_response(404, exc)


@app.exception_handler(errors.DuplicateUsernameError)
@app.exception_handler(errors.DuplicateEmailError)
@app.exception_handler(errors.ConstraintViolationError)
async def conflict_handler(request: Request, exc: errors.ServiceError):
    return _error_response(409, exc)


@app.exception_handler(errors.ValidationError)
async def validation_handler(request: Request, exc: errors.ValidationError):
    return _error_response(400, exc)


# --- authentication -------------------------------------------------------

@app.post('/auth/register', status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a user; STUDENT/TEACHER roles also get a derived record."""
    user = models.User(
        username=payload.username,
        password=payload.password,
        email=payload.email,
        last_name=payload.last_name,
    )
    created = services.AuthService(db).register_user(user, payload.role)
    return UserOut.from_entity(created)


@app.post('/auth/login')
def login(payload: LoginIn, request: Request, db: Session = Depends(get_session)):
    """Check credentials and mark the session as authenticated."""
    user = services.AuthService(db).authenticate(payload.username, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail='Invalid username or password')
    start_session(request, user)
    return UserOut.from_entity(user)


@app.post('/auth/logout')
def logout(request: Request):
    end_session(request)
    return {'status': 'ok'}


@app.get('/dashboard')
def dashboard(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Landing data for a logged-in user."""
    return {
        'username': user.username,
        'role': user.role,
        'students': len(services.StudentService(db).list_students()),
        'teachers': len(services.TeacherService(db).list_teachers()),
        'courses': len(services.CourseService(db).list_courses()),
    }


# --- courses --------------------------------------------------------------

@app.get('/courses', response_model=List[CourseOut])
def list_courses(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [CourseOut.from_entity(c) for c in services.CourseService(db).list_courses()]


@app.get('/courses/search', response_model=List[CourseOut])
def search_courses(text: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Case-insensitive search over course names and descriptions."""
    return [CourseOut.from_entity(c) for c in services.CourseService(db).search_courses(text)]


@app.post('/courses', response_model=CourseOut, status_code=201)
def create_course(payload: CourseIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Create a course and optionally assign its teacher."""
    course = models.Course(name=payload.name, description=payload.description)
    return CourseOut.from_entity(services.CourseService(db).save_course(course, teacher_id=payload.teacher_id))


@app.get('/courses/{course_id}', response_model=CourseOut)
def get_course(course_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return CourseOut.from_entity(services.CourseService(db).get_course(course_id))


@app.put('/courses/{course_id}', response_model=CourseOut)
def update_course(course_id: int, payload: CourseIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Update name/description; a given `teacher_id` reassigns the course."""
    svc = services.CourseService(db)
    course = svc.get_course(course_id)
    course.name = payload.name
    course.description = payload.description
    return CourseOut.from_entity(svc.save_course(course, teacher_id=payload.teacher_id))


@app.delete('/courses/{course_id}')
def delete_course(course_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.CourseService(db).delete_course(course_id)
    return {'status': 'ok'}


@app.get('/courses/{course_id}/students', response_model=List[StudentOut])
def course_students(course_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [StudentOut.from_entity(s) for s in services.CourseService(db).enrolled_students(course_id)]


@app.post('/courses/{course_id}/teacher', response_model=CourseOut)
def assign_teacher(course_id: int, payload: TeacherAssignmentIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    course = services.CourseService(db).assign_teacher_to_course(course_id, payload.teacher_id)
    return CourseOut.from_entity(course)


@app.post('/courses/{course_id}/students/{student_id}', response_model=CourseOut)
def add_student(course_id: int, student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    course = services.CourseService(db).add_student_to_course(course_id, student_id)
    return CourseOut.from_entity(course)


@app.delete('/courses/{course_id}/students/{student_id}', response_model=CourseOut)
def remove_student(course_id: int, student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    course = services.CourseService(db).remove_student_from_course(course_id, student_id)
    return CourseOut.from_entity(course)


# --- students -------------------------------------------------------------

@app.get('/students', response_model=List[StudentOut])
def list_students(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [StudentOut.from_entity(s) for s in services.StudentService(db).list_students()]


@app.post('/students', response_model=StudentOut, status_code=201)
def create_student(payload: StudentIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    student = models.Student(first_name=payload.first_name, last_name=payload.last_name, email=payload.email)
    return StudentOut.from_entity(services.StudentService(db).save_student(student))


@app.get('/students/{student_id}', response_model=StudentOut)
def get_student(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return StudentOut.from_entity(services.StudentService(db).get_student(student_id))


@app.put('/students/{student_id}', response_model=StudentOut)
def update_student(student_id: int, payload: StudentIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.StudentService(db)
    student = svc.get_student(student_id)
    student.first_name = payload.first_name
    student.last_name = payload.last_name
    student.email = payload.email
    return StudentOut.from_entity(svc.save_student(student))


@app.delete('/students/{student_id}')
def delete_student(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    services.StudentService(db).delete_student(student_id)
    return {'status': 'ok'}


@app.get('/students/{student_id}/courses', response_model=List[CourseOut])
def student_courses(student_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [CourseOut.from_entity(c) for c in services.StudentService(db).student_courses(student_id)]


@app.post('/students/{student_id}/courses/{course_id}', response_model=StudentOut)
def enroll(student_id: int, course_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    student = services.StudentService(db).enroll_student_in_course(student_id, course_id)
    return StudentOut.from_entity(student)


@app.delete('/students/{student_id}/courses/{course_id}', response_model=StudentOut)
def withdraw(student_id: int, course_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    student = services.StudentService(db).withdraw_student_from_course(student_id, course_id)
    return StudentOut.from_entity(student)


# --- teachers -------------------------------------------------------------

@app.get('/teachers', response_model=List[TeacherOut])
def list_teachers(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [TeacherOut.from_entity(t) for t in services.TeacherService(db).list_teachers()]


@app.get('/teachers/search', response_model=List[TeacherOut])
def search_teachers(name: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Case-insensitive match on first or last name."""
    return [TeacherOut.from_entity(t) for t in services.TeacherService(db).find_by_name(name)]


@app.post('/teachers', response_model=TeacherOut, status_code=201)
def create_teacher(payload: TeacherIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    teacher = models.Teacher(first_name=payload.first_name, last_name=payload.last_name, email=payload.email)
    return TeacherOut.from_entity(services.TeacherService(db).save_teacher(teacher))


@app.get('/teachers/{teacher_id}', response_model=TeacherOut)
def get_teacher(teacher_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Teacher details including the aggregate course count."""
    svc = services.TeacherService(db)
    teacher = svc.get_teacher(teacher_id)
    return TeacherOut.from_entity(teacher, course_count=svc.count_courses(teacher_id))


@app.put('/teachers/{teacher_id}', response_model=TeacherOut)
def update_teacher(teacher_id: int, payload: TeacherIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = services.TeacherService(db)
    teacher = svc.get_teacher(teacher_id)
    teacher.first_name = payload.first_name
    teacher.last_name = payload.last_name
    teacher.email = payload.email
    return TeacherOut.from_entity(svc.save_teacher(teacher))


@app.delete('/teachers/{teacher_id}')
def delete_teacher(teacher_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete a teacher; their courses are kept without a teacher."""
    services.TeacherService(db).delete_teacher(teacher_id)
    return {'status': 'ok'}


@app.get('/teachers/{teacher_id}/courses', response_model=List[CourseOut])
def teacher_courses(teacher_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return [CourseOut.from_entity(c) for c in services.TeacherService(db).teacher_courses(teacher_id)]


@app.post('/teachers/{teacher_id}/courses/{course_id}', response_model=TeacherOut)
def assign_course(teacher_id: int, course_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    teacher = services.TeacherService(db).assign_course_to_teacher(teacher_id, course_id)
    return TeacherOut.from_entity(teacher)


@app.delete('/teachers/{teacher_id}/courses/{course_id}', response_model=TeacherOut)
def remove_course(teacher_id: int, course_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    teacher = services.TeacherService(db).remove_course_from_teacher(teacher_id, course_id)
    return TeacherOut.from_entity(teacher)


# --- misc -----------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
def home():
    """Minimal homepage for quick manual testing."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
      <meta charset="UTF-8" />
      <title>Academy Records API</title>
      <style>
        body { font-family: Arial, sans-serif; margin: 32px; }
        a { color: #0a6; }
        .card { max-width: 640px; padding: 16px; border: 1px solid #ddd; border-radius: 8px; }
      </style>
    </head>
    <body>
      <div class="card">
        <h1>Academy Records API</h1>
        <p>Quick links for local testing:</p>
        <ul>
          <li><a href="/docs">Swagger UI</a></li>
        </ul>
        <p>Use <code>/auth/login</code> to open a session, then try <code>/courses</code>, <code>/students</code> or <code>/teachers</code>.</p>
      </div>
    </body>
    </html>
    """


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
