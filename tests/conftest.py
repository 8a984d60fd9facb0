import os
import sys

os.environ["ENV"] = "testing"
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

import pytest
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401  registers the tables
from database import Base, build_engine


@pytest.fixture
def engine():
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()
