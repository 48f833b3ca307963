"""
Shared fixtures: temporary SQLite database, scripted reasoning engine,
fully wired workflow.
"""

import json
from pathlib import Path

import pytest

from adjudicator.config import Settings
from adjudicator.db import Database
from adjudicator.ingest import TextExtractor
from adjudicator.notifications import NotificationBus
from adjudicator.orchestrator import AdjudicationOrchestrator
from adjudicator.storage import LocalStorage
from adjudicator.store import CaseStore
from adjudicator.workflow import CaseWorkflow, UploadedFile


VERDICT_JSON = json.dumps({
    "decision": "favor_side_a",
    "reasoning": "The defendant failed to deliver the goods on the agreed date.",
    "keyFindings": ["Delivery was three weeks late", "No force majeure notice was given"],
    "legalPrinciples": ["Breach of contract", "Expectation damages"],
    "damages": "$12,500",
    "notes": "Damages limited to documented losses.",
    "confidence": 0.82,
    "openToReconsideration": True,
})

ARGUMENT_JSON = json.dumps({
    "response": "The new evidence does not change the finding of late delivery.",
    "verdictChange": "none",
    "newReasoning": None,
    "addressedPoints": ["New shipping records"],
    "remainingConcerns": [],
    "legalCitations": ["UCC 2-601"],
    "confidence": 0.78,
    "requestsClarification": None,
})


class FakeReasoningEngine:
    """
    Scripted stand-in for LLMClient.

    Returns queued responses in order; when the queue is empty it answers
    verdict and argument prompts with well-formed JSON and anything else
    with a short summary.
    """

    def __init__(self, responses=None, configured=True, error=None):
        self.responses = list(responses or [])
        self.configured = configured
        self.error = error
        self.prompts = []

    def is_configured(self):
        return self.configured

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        if '"verdictChange"' in prompt:
            return ARGUMENT_JSON
        if '"decision"' in prompt:
            return VERDICT_JSON
        return "The dispute concerns late delivery under a supply contract."


@pytest.fixture
def make_settings(tmp_path: Path):
    def _make(**overrides):
        values = {
            "database_url": f"sqlite:///{tmp_path / 'adjudicator.db'}",
            "storage_path": str(tmp_path / "storage"),
            "llm_mode": "gemini",
            "gemini_api_key": "test-key",
            "cors_allow_origins": "http://localhost:5173",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def store(database):
    return CaseStore(database)


@pytest.fixture
def engine():
    return FakeReasoningEngine()


@pytest.fixture
def bus():
    return NotificationBus(queue_size=10)


@pytest.fixture
def storage(settings):
    return LocalStorage(settings.storage_path)


@pytest.fixture
def workflow(store, engine, storage, bus, settings):
    return CaseWorkflow(
        store=store,
        orchestrator=AdjudicationOrchestrator(engine),
        extractor=TextExtractor(),
        storage=storage,
        bus=bus,
        settings=settings,
    )


@pytest.fixture
def text_file():
    def _make(filename="evidence.txt", text="Signed supply contract dated 1 March."):
        return UploadedFile(filename=filename, data=text.encode("utf-8"), content_type="text/plain")
    return _make
