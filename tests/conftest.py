import os

os.environ["DATABASE_URL"] = "sqlite://"

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import lyro_api.models  # noqa: E402,F401
from lyro_api.database import Base, build_engine  # noqa: E402
from lyro_api.services.ai_gateway import AIFallbackGateway  # noqa: E402
from lyro_api.services.chat_service import ChatEngine  # noqa: E402
from lyro_api.services.llm.base import LLMProvider, LLMResponse  # noqa: E402
from lyro_api.services.store import SqlChatStore  # noqa: E402


class FakeProvider(LLMProvider):
    """Scripted provider: each queued item is a reply string or an exception to raise."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def generate(
        self,
        messages,
        system_prompt=None,
        model=None,
        temperature=0.7,
        max_tokens=1000,
        timeout_seconds=None,
    ):
        self.calls.append({"messages": list(messages), "system_prompt": system_prompt})
        item = self.replies.pop(0) if self.replies else "Respuesta de prueba"
        if isinstance(item, Exception):
            raise item
        return LLMResponse(content=item, model="fake")


class FakeClock:
    """Stands in for time.monotonic and for the wall clock used by the quota."""

    def __init__(self, start=1000.0, day=None):
        self.now = start
        self.day = day or datetime(2024, 5, 10, 15, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def wall(self):
        return self.day


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    Session = sessionmaker(bind=db_engine, autoflush=False, autocommit=False, future=True)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def store(db_session):
    return SqlChatStore(db_session)


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_gateway(fake_provider, clock):
    def _make(**overrides):
        params = dict(
            provider=fake_provider,
            system_prompt="Eres Lyro.",
            daily_limit=50,
            cooldown_seconds=0.0,
            max_retries=2,
            backoff_seconds=0.0,
            context_ttl_seconds=1800,
            max_contexts=500,
            tz_name="America/Guayaquil",
            sleep=lambda seconds: None,
            monotonic=clock,
            clock=clock.wall,
        )
        params.update(overrides)
        return AIFallbackGateway(**params)

    return _make


@pytest.fixture
def gateway(make_gateway):
    return make_gateway()


@pytest.fixture
def chat_engine(gateway):
    return ChatEngine(gateway=gateway)
