import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("TZ", "UTC")

import pytest

from taskcal import models
from taskcal.db import Base, engine, session_scope
from taskcal.services import task_service


@pytest.fixture(autouse=True, scope="session")
def create_tables():
    Base.metadata.create_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with session_scope() as session:
        for model in reversed(models.ALL_MODELS):
            session.query(model).delete()
    task_service.occurrence_cache.clear()
