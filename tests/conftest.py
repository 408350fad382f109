"""
SkillUp - Test Configuration and Fixtures
"""
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import bcrypt
import pytest
from faker import Faker
from httpx import AsyncClient, ASGITransport

# Set testing environment
os.environ['SUPABASE_URL'] = 'http://localhost:54321'
os.environ['SUPABASE_KEY'] = 'test-anon-key'
os.environ['JWT_SECRET'] = 'test-jwt-secret-key-for-testing'
os.environ['LOG_LEVEL'] = 'WARNING'

from skillup.main import app
from skillup.core import database
from skillup.core.security import ADMIN, FACULTY, STUDENT, create_access_token
from skillup.services import batches, courses, tasks, users
from tests.mocks.mock_supabase import MockSupabaseClient

fake = Faker()

PASSWORD = 'testpassword123'


def auth_headers(user: dict) -> dict:
    return {'Authorization': f"Bearer {create_access_token(user['id'], user['role'])}"}


def utc(days: float = 0) -> datetime:
    """Now shifted by a number of days"""
    return datetime.now(timezone.utc) + timedelta(days=days)


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Cheap bcrypt rounds so user factories stay quick"""
    monkeypatch.setattr(
        users,
        'get_password_hash',
        lambda password: bcrypt.hashpw(password.encode('utf-8')[:72], bcrypt.gensalt(rounds=4)).decode('utf-8'),
    )


@pytest.fixture
def db(monkeypatch) -> MockSupabaseClient:
    """Fresh in-memory store wired in as the app's Supabase client"""
    mock = MockSupabaseClient()
    monkeypatch.setattr(database, '_supabase_client', mock)
    return mock


@pytest.fixture
async def client(db) -> AsyncGenerator[AsyncClient, None]:
    """Create test client against the in-memory store"""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest.fixture
def make_user(db):
    """Factory creating a user of any role"""
    def _make(role: str, **fields) -> dict:
        data = {
            'first_name': fake.first_name(),
            'last_name': fake.last_name(),
            'email': fake.unique.email(),
            'username': fake.unique.user_name(),
            'password': PASSWORD,
            'department': 'CSE',
        }
        if role == STUDENT:
            data['roll_number'] = fake.unique.bothify('CS##??###')
            data['semester'] = 3
        data.update(fields)
        return users.create_user(db, role, data)
    return _make


@pytest.fixture
def admin(make_user) -> dict:
    return make_user(ADMIN)


@pytest.fixture
def faculty(make_user) -> dict:
    return make_user(FACULTY)


@pytest.fixture
def student(make_user) -> dict:
    return make_user(STUDENT)


@pytest.fixture
def make_batch(db, admin):
    """Factory creating a batch with a roster"""
    def _make(student_ids=(), **fields) -> dict:
        data = {
            'name': fake.unique.bothify('Batch-??##'),
            'academic_year': '2025-2026',
            'department': 'CSE',
            'student_ids': list(student_ids),
        }
        data.update(fields)
        return batches.create_batch(db, data, admin)
    return _make


@pytest.fixture
def make_course(db, admin):
    """Factory creating a course linked to faculty and batches"""
    def _make(faculty_ids=(), batch_ids=(), **fields) -> dict:
        data = {
            'course_code': fake.unique.bothify('CS####').upper(),
            'title': fake.catch_phrase(),
            'status': 'Active',
            'faculty_ids': list(faculty_ids),
            'batch_ids': list(batch_ids),
        }
        data.update(fields)
        return courses.create_course(db, data, admin)
    return _make


@pytest.fixture
def make_task(db):
    """Factory creating a task (Active by default) and seeding its grades"""
    def _make(course_id: str, created_by: str = None, **fields) -> dict:
        data = {
            'title': fake.sentence(nb_words=3),
            'type': 'Assignment',
            'course_id': course_id,
            'publish_date': utc(-1),
            'due_date': utc(7),
            'max_points': 100,
        }
        data.update(fields)
        return tasks.create_task(db, data, created_by, utc())
    return _make


@pytest.fixture
def classroom(make_user, make_batch, make_course, make_task, faculty) -> dict:
    """A faculty member teaching one course to a two-student batch with one task"""
    s1 = make_user(STUDENT)
    s2 = make_user(STUDENT)
    batch = make_batch([s1['id'], s2['id']])
    course = make_course([faculty['id']], [batch['id']])
    task = make_task(course['id'], faculty['id'])
    return {
        'faculty': faculty,
        'students': [s1, s2],
        'batch': batch,
        'course': course,
        'task': task,
    }


def grades_for(db, task_id: str) -> dict:
    """Grade rows of a task keyed by student id"""
    return {g['student_id']: g for g in db.rows('grades') if g['task_id'] == task_id}
