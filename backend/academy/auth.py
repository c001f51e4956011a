"""Session helpers and FastAPI login-gate dependencies.

Sessions are signed cookies managed by Starlette's `SessionMiddleware`
(configured in `main`). A successful login stores `user_id`,
`username` and `authenticated` in the session; `require_login` and
`get_current_user` reject requests without that flag.

The implementation is intentionally small: gate failures raise
HTTPExceptions so the helpers can be used directly inside route
dependencies.
"""

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from . import models, repositories
from .database import get_session


def start_session(request: Request, user: models.User) -> None:
    """Mark the request's session as authenticated for `user`."""
    request.session.clear()
    request.session["user_id"] = user.id
    request.session["username"] = user.username
    request.session["authenticated"] = True


def end_session(request: Request) -> None:
    request.session.clear()


def require_login(request: Request) -> int:
    """FastAPI dependency returning the session's user id or raising 401."""
    if not request.session.get("authenticated"):
        raise HTTPException(status_code=401, detail="not authenticated")
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="invalid session")
    return user_id


def get_current_user(request: Request, user_id: int = Depends(require_login), db: Session = Depends(get_session)) -> models.User:
    """FastAPI dependency that returns the logged-in `User`.

    A session pointing at a user that no longer exists is cleared and
    rejected with 401.
    """
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        end_session(request)
        raise HTTPException(status_code=401, detail="user not found")
    return user
