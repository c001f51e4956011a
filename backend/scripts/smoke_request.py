"""Run a quick smoke test against the app.

Uses FastAPI's TestClient to hit `/health`, log in with the configured
admin account and list the courses visible to that session.
"""

import sys
import os

# Ensure backend folder is on sys.path so `academy` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from academy.config import settings
from academy.main import app


def run_testclient():
    with TestClient(app) as client:
        resp = client.get('/health')
        print('HEALTH:', resp.status_code, resp.json())
        login = client.post('/auth/login', json={'username': settings.ADMIN_USERNAME, 'password': settings.ADMIN_PASSWORD})
        print('LOGIN:', login.status_code)
        if login.status_code != 200:
            return 1
        courses = client.get('/courses')
        print('COURSES:', courses.status_code, courses.json())
    return 0


if __name__ == '__main__':
    sys.exit(run_testclient())
