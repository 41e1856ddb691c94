import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.domain.roles import UserRole
from app.infrastructure.db import models  # noqa: F401
from app.infrastructure.db.session import Base, get_db
from app.main import app
from tests.helpers.factories import (
    create_academic_year,
    create_category,
    create_school,
    create_user_with_profile,
)

USE_POSTGRES = os.environ.get("TEST_DATABASE", "sqlite") == "postgres"


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _postgres_engine():
    from alembic import command
    from alembic.config import Config
    from testcontainers.postgres import PostgresContainer

    from app.config import settings

    container = PostgresContainer("postgres:16-alpine")
    container.start()
    url = container.get_connection_url().replace("postgresql://", "postgresql+psycopg2://", 1)
    settings.database_url = url
    command.upgrade(Config(str(Path(__file__).resolve().parents[1] / "alembic.ini")), "head")
    return create_engine(url, future=True), container


@pytest.fixture(scope="session")
def engine():
    container = None
    if USE_POSTGRES:
        engine, container = _postgres_engine()
    else:
        engine = create_engine(
            "sqlite://",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()
        if container is not None:
            container.stop()


@pytest.fixture(autouse=True)
def clean_database(engine):
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture
def db_session(engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def seeded_users(db_session):
    north_school = create_school(db_session, "North High", "north-high")
    south_school = create_school(db_session, "South High", "south-high")
    return {
        "north_school": north_school,
        "south_school": south_school,
        "admin": create_user_with_profile(
            db_session,
            email="admin@example.com",
            password="admin123",
            school_id=north_school.id,
            role=UserRole.school_admin,
        ),
        "staff": create_user_with_profile(
            db_session,
            email="staff@example.com",
            password="staff123",
            school_id=north_school.id,
            role=UserRole.school_staff,
        ),
        "parent": create_user_with_profile(
            db_session,
            email="parent@example.com",
            school_id=north_school.id,
            role=UserRole.parent,
        ),
        "inactive_staff": create_user_with_profile(
            db_session,
            email="inactive@example.com",
            school_id=north_school.id,
            role=UserRole.school_staff,
            profile_active=False,
        ),
        "unlinked_admin": create_user_with_profile(
            db_session,
            email="unlinked@example.com",
            school_id=None,
            role=UserRole.school_admin,
        ),
        "south_admin": create_user_with_profile(
            db_session,
            email="south-admin@example.com",
            school_id=south_school.id,
            role=UserRole.school_admin,
        ),
    }


@pytest.fixture
def fee_catalog(db_session, seeded_users):
    school_id = seeded_users["north_school"].id
    return {
        "academic_year": create_academic_year(db_session, school_id=school_id),
        "tuition": create_category(db_session, school_id=school_id, name="Tuition"),
        "activities": create_category(db_session, school_id=school_id, name="Activities", is_mandatory=False),
    }
