import json
import os
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the repository root is on sys.path so tests can import the package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from clinical_ai.config import AppConfig  # noqa: E402
from clinical_ai.db import models as db_models  # noqa: E402
from clinical_ai.store import ClinicalDataStore  # noqa: E402


@pytest.fixture(scope='function')
def session_factory() -> Iterator[sessionmaker]:
    """Provide an isolated in-memory SQLite database for each test."""

    engine = sa.create_engine(
        'sqlite+pysqlite:///:memory:',
        future=True,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    db_models.Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture(scope='function')
def db_session(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(session_factory) -> ClinicalDataStore:
    return ClinicalDataStore(session_factory)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(openai_api_key='sk-test', gateway_api_key='gateway-test')


@pytest.fixture(scope='function')
def api_client(store, app_config) -> Iterator[TestClient]:
    """Yield a FastAPI test client bound to the in-memory database."""

    from clinical_ai import main

    main.app.dependency_overrides[main.get_store] = lambda: store
    main.app.dependency_overrides[main.get_config] = lambda: app_config
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


class Seeder:
    """Insert rows the pipeline reads."""

    def __init__(self, factory: sessionmaker) -> None:
        self._factory = factory

    def _add(self, row):
        session = self._factory()
        try:
            session.add(row)
            session.commit()
            return row
        finally:
            session.close()

    def settings(self, **overrides) -> db_models.AINoteSettings:
        values = {
            'enabled': True,
            'provider': 'lovable_ai',
            'model': 'google/gemini-2.5-flash',
            'minimum_confidence_threshold': 0.7,
            'risk_assessment_enabled': False,
            'suggestion_engine_enabled': True,
        }
        values.update(overrides)
        return self._add(db_models.AINoteSettings(**values))

    def client(self, **overrides) -> db_models.Client:
        values = {
            'id': 'client-1',
            'first_name': 'Jane',
            'last_name': 'Doe',
            'date_of_birth': date(1990, 1, 1),
            'gender': 'female',
        }
        values.update(overrides)
        return self._add(db_models.Client(**values))

    def template(self, **overrides) -> db_models.NoteTemplate:
        values = {
            'name': 'SOAP Progress Note',
            'note_type': 'progress_note',
            'note_format': 'SOAP',
            'is_default': True,
            'template_structure': {
                'sections': [
                    {'key': 'subjective', 'label': 'Subjective'},
                    {'key': 'objective', 'label': 'Objective'},
                    {'key': 'assessment', 'label': 'Assessment'},
                    {'key': 'plan', 'label': 'Plan'},
                ]
            },
            'ai_prompts': {'subjective': 'Client reported concerns'},
        }
        values.update(overrides)
        return self._add(db_models.NoteTemplate(**values))


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None, reason: str = 'OK'):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        if text is None:
            text = json.dumps(payload) if payload is not None else ''
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON object could be decoded')
        return self._payload


@dataclass
class FakeCompletionAPI:
    """Queue of canned provider responses standing in for ``requests.post``."""

    responses: List[Any] = field(default_factory=list)
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def queue(self, response) -> None:
        self.responses.append(response)

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({'url': url, 'headers': headers, 'json': json, 'timeout': timeout})
        if not self.responses:
            raise AssertionError('unexpected completion call')
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_completion(monkeypatch) -> FakeCompletionAPI:
    api = FakeCompletionAPI()
    monkeypatch.setattr('clinical_ai.completion.requests.post', api.post)
    return api


def json_completion(content: Dict[str, Any], finish_reason: str = 'stop', model: str = 'test-model') -> FakeResponse:
    return FakeResponse(
        payload={
            'model': model,
            'choices': [
                {
                    'finish_reason': finish_reason,
                    'message': {'role': 'assistant', 'content': json.dumps(content)},
                }
            ],
        }
    )


def tool_completion(*calls, finish_reason: str = 'stop', model: str = 'test-model') -> FakeResponse:
    """Build a tool-call response from ``(name, arguments)`` pairs."""

    return FakeResponse(
        payload={
            'model': model,
            'choices': [
                {
                    'finish_reason': finish_reason,
                    'message': {
                        'role': 'assistant',
                        'content': None,
                        'tool_calls': [
                            {
                                'id': f'call_{index}',
                                'type': 'function',
                                'function': {'name': name, 'arguments': json.dumps(arguments)},
                            }
                            for index, (name, arguments) in enumerate(calls)
                        ],
                    },
                }
            ],
        }
    )


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
