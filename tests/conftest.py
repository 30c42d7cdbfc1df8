"""Shared test fixtures."""

from collections.abc import Iterator

import pytest
from pydantic_ai import models

from crosscut.config import EngineConfig
from crosscut.interview.engine import InterviewEngine
from crosscut.storage import InMemorySessionStore
from tests.fakes import ScriptedItemScorer, ScriptedSafetyClassifier


@pytest.fixture(autouse=True)
def _prevent_real_api_calls() -> Iterator[None]:
    """Safety: block real API calls in all tests."""
    original = models.ALLOW_MODEL_REQUESTS
    models.ALLOW_MODEL_REQUESTS = False
    yield
    models.ALLOW_MODEL_REQUESTS = original


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def safety_classifier() -> ScriptedSafetyClassifier:
    return ScriptedSafetyClassifier()


@pytest.fixture
def item_scorer() -> ScriptedItemScorer:
    return ScriptedItemScorer()


@pytest.fixture
def engine(
    store: InMemorySessionStore,
    safety_classifier: ScriptedSafetyClassifier,
    item_scorer: ScriptedItemScorer,
) -> InterviewEngine:
    """Engine over an in-memory store with short oracle timeouts."""
    config = EngineConfig(safety_timeout_seconds=1.0, scoring_timeout_seconds=1.0)
    return InterviewEngine(store, safety_classifier, item_scorer, config=config)
