from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from packvalue.config import AppConfig, set_config
from packvalue.models import Base


@pytest.fixture(autouse=True)
def app_config() -> AppConfig:
    config = AppConfig()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()
