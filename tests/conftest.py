"""
Shared pytest fixtures for AnswerForge tests.

Fixture Organization
--------------------
- **store**: Empty SQLiteStore in a temporary directory
- **embedder / generator**: Deterministic model collaborators
- **clock**: AdvancingClock for run timestamps
- **engine / ingestor / autofill**: Pipeline objects over the fakes
- **evidence_store**: Store with the sample policy documents embedded
"""

import asyncio
from pathlib import Path

import pytest

from answerforge.autofill.scheduler import NoDelay
from answerforge.autofill.service import QuestionnaireAutofill
from answerforge.ingest.documents import DocumentIngestor
from answerforge.query.answer_engine import AnswerEngine
from answerforge.storage.sqlite import SQLiteStore
from tests.fixtures.fakes import (
    CONTINUITY_PLAN,
    ORG,
    SECURITY_POLICY,
    AdvancingClock,
    FakeEmbedder,
    ScriptedGenerator,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of config loading."""
    for name in (
        "OPENAI_API_KEY",
        "ANSWERFORGE_CHAT_MODEL",
        "ANSWERFORGE_EMBEDDING_MODEL",
        "ANSWERFORGE_DB_PATH",
        "ANSWERFORGE_BATCH_SIZE",
        "ANSWERFORGE_DEBUG",
        "ANSWERFORGE_PERSIST_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    return SQLiteStore(tmp_path / "answerforge.db")


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def clock() -> AdvancingClock:
    return AdvancingClock()


@pytest.fixture
def ingestor(store: SQLiteStore, embedder: FakeEmbedder) -> DocumentIngestor:
    return DocumentIngestor(store, embedder)


@pytest.fixture
def evidence_store(store: SQLiteStore, ingestor: DocumentIngestor) -> SQLiteStore:
    """Store holding security.md and continuity.md, fully embedded."""

    async def seed() -> None:
        await ingestor.ingest_text(ORG, "security.md", SECURITY_POLICY)
        await ingestor.ingest_text(ORG, "continuity.md", CONTINUITY_PLAN)
        await ingestor.embed_pending(ORG)

    asyncio.run(seed())
    return store


@pytest.fixture
def engine(
    evidence_store: SQLiteStore,
    embedder: FakeEmbedder,
    generator: ScriptedGenerator,
) -> AnswerEngine:
    return AnswerEngine(evidence_store, embedder, generator)


@pytest.fixture
def autofill(
    evidence_store: SQLiteStore, engine: AnswerEngine, clock: AdvancingClock
) -> QuestionnaireAutofill:
    return QuestionnaireAutofill(evidence_store, engine, NoDelay(), clock=clock)
