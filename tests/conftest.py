"""Shared fixtures: in-memory SQLite DB, fake ledger and a fixed clock."""

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import GuardSettings
from db.models import Base
from nada.services.wallet_guard import WalletGuard
from tests.support import NOW, FakeLedger, FakeProfiles


@pytest.fixture()
def guard_settings() -> GuardSettings:
    return GuardSettings(timezone=None, deny_on_suspicious=False, retry_delay=0.0)


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture()
def profiles() -> FakeProfiles:
    return FakeProfiles()


@pytest.fixture()
def guard(ledger: FakeLedger, profiles: FakeProfiles, guard_settings: GuardSettings) -> WalletGuard:
    return WalletGuard(ledger, profiles, guard_settings, clock=lambda: NOW)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng: Engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    factory: sessionmaker[Session] = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    sess: Session = factory()
    yield sess
    sess.rollback()
    sess.close()
