import sys
from pathlib import Path
from typing import Generator

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app import create_app
from models import db
from services import StudentService
from store import RowStore


@pytest.fixture
def app(monkeypatch: pytest.MonkeyPatch) -> Generator:
    monkeypatch.setenv('REQUEST_LOG_SAMPLE_RATE', '1')
    application = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def service(app, notifications) -> Generator:
    with app.app_context():
        yield StudentService(RowStore(), notify=notifications.append)


@pytest.fixture
def make_student(service):
    def _make(name='Ahmad', group_name='3A', teacher='Hasan', **extra):
        values = {'name': name, 'group_name': group_name, 'teacher': teacher}
        values.update(extra)
        return service.create_student(values)
    return _make
