"""
Общие pytest фикстуры.

Provides:
    - app: Flask приложение с TestingConfig (session-scoped)
    - session: пересоздание таблиц на каждый тест (autouse)
    - project, other_project, user: базовые сущности
    - test_areas: две тестовые области проекта
    - cases: три кейса проекта
    - make_test_set: фабрика тест сетов напрямую через ORM
"""

import os

# Логи в файл во время тестов не пишем
os.environ.setdefault("LOG_FILE_NAME", "")

from datetime import date  # noqa: E402

import pytest  # noqa: E402

import app.models as models  # noqa: E402
from app import create_app, db  # noqa: E402
from app.config import TestingConfig  # noqa: E402


@pytest.fixture(scope="session")
def app():
    """Flask приложение, одно на всю тестовую сессию."""
    return create_app(TestingConfig)


@pytest.fixture(autouse=True)
def session(app):
    """На каждый тест: app context и чистая схема."""
    with app.app_context():
        db.create_all()
        yield db.session
        db.session.rollback()
        db.drop_all()


@pytest.fixture()
def project():
    project = models.Project(name="Tarantula")
    db.session.add(project)
    db.session.commit()
    return project


@pytest.fixture()
def other_project():
    project = models.Project(name="Other project")
    db.session.add(project)
    db.session.commit()
    return project


@pytest.fixture()
def user():
    user = models.User(login="tester", name="Test User")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def test_areas(project):
    areas = [
        models.TestArea(project_id=project.id, name="Billing"),
        models.TestArea(project_id=project.id, name="Login"),
    ]
    db.session.add_all(areas)
    db.session.commit()
    return areas


@pytest.fixture()
def cases(project):
    items = [
        models.Case(project_id=project.id, title="Login works", average_duration=60),
        models.Case(
            project_id=project.id,
            title="Logout works",
            average_duration=120,
            priority=1,
            date=date(2026, 9, 1),
        ),
        models.Case(project_id=project.id, title="Password reset", objective="Reset"),
    ]
    db.session.add_all(items)
    db.session.commit()
    return items


@pytest.fixture()
def make_test_set(project):
    """Создает TestSet напрямую (без helpers) и коммитит его."""

    def _make(**kwargs):
        values = {"name": "Set", "project_id": project.id, "date": date(2026, 10, 1)}
        values.update(kwargs)
        test_set = models.TestSet(**values)
        db.session.add(test_set)
        db.session.commit()
        return test_set

    return _make
