"""
Factory functions wiring the pipeline from a Config.

The CLI builds everything through these helpers so commands share one
store, one OpenAI client, and the configured delay.
"""

from dataclasses import dataclass
from typing import Optional

from answerforge.autofill.review import AnswerReview
from answerforge.autofill.scheduler import DelayStrategy, FixedDelay, NoDelay
from answerforge.autofill.service import QuestionnaireAutofill
from answerforge.core.config import Config
from answerforge.ingest.documents import DocumentIngestor
from answerforge.llm.base import AnswerGenerator, Embedder, GenerationConfig
from answerforge.llm.grounded import GroundedAnswerGenerator
from answerforge.llm.openai import OpenAIClient
from answerforge.query.answer_engine import AnswerEngine
from answerforge.storage.sqlite import SQLiteStore


@dataclass
class Components:
    """Everything a command needs."""

    store: SQLiteStore
    ingestor: DocumentIngestor
    engine: AnswerEngine
    autofill: QuestionnaireAutofill
    review: AnswerReview


def create_store(config: Config) -> SQLiteStore:
    """Open the configured SQLite database."""
    return SQLiteStore(config.db_path)


def create_openai_client(config: Config) -> OpenAIClient:
    provider = config.llm.openai
    return OpenAIClient(
        api_key=provider.api_key or None,
        model=provider.model,
        embedding_model=provider.embedding_model,
        embedding_dimensions=provider.embedding_dimensions,
    )


def create_delay(config: Config) -> DelayStrategy:
    seconds = config.autofill.question_delay_seconds
    return FixedDelay(seconds) if seconds > 0 else NoDelay()


def create_components(
    config: Config,
    embedder: Optional[Embedder] = None,
    generator: Optional[AnswerGenerator] = None,
    store: Optional[SQLiteStore] = None,
) -> Components:
    """
    Build the store, ingestor, answer engine, autofill, and review services.

    Args:
        config: Loaded configuration
        embedder: Override for the OpenAI embedder
        generator: Override for the OpenAI-backed generator
        store: Override for the configured database

    Returns:
        Components sharing one store.
    """
    store = store or create_store(config)

    if embedder is None or generator is None:
        client = create_openai_client(config)
        embedder = embedder or client
        if generator is None:
            provider = config.llm.openai
            generator = GroundedAnswerGenerator(
                client,
                max_citations=config.llm.max_citations,
                config=GenerationConfig(
                    max_tokens=provider.max_tokens,
                    temperature=provider.temperature,
                    json_mode=True,
                ),
            )

    engine = AnswerEngine(store, embedder, generator, config.retrieval)
    return Components(
        store=store,
        ingestor=DocumentIngestor(store, embedder, config.chunking),
        engine=engine,
        autofill=QuestionnaireAutofill(store, engine, create_delay(config)),
        review=AnswerReview(store, engine),
    )
