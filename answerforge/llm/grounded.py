"""Evidence-bounded answer generation on top of an LLMClient.

Builds the prompt from the question and quoted snippets, asks for a JSON
object, and parses the reply into a GroundedDraft. The draft is unverified:
citation mapping and the claim check happen in the answer engine.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Sequence

from answerforge.core.exceptions import GenerationError
from answerforge.core.logging import get_logger
from answerforge.llm.base import GenerationConfig, GroundedDraft, LLMClient, SnippetRef
from answerforge.query.models import NOT_SPECIFIED_RESPONSE_TEXT, Confidence
from answerforge.shared.text_utils import truncate_text

logger = get_logger(__name__)

DEFAULT_MAX_CITATIONS = 5

SYSTEM_PROMPT = f"""You answer security and compliance questionnaire questions.

## Strict Evidence Adherence

- Use ONLY the evidence snippets provided by the user message.
- Do NOT use outside knowledge or make assumptions beyond the snippets.
- Every answer must cite the chunkId values of the snippets that support it.
- If the snippets do not support an answer, reply with exactly:
  "{NOT_SPECIFIED_RESPONSE_TEXT}"
- Answer in plain prose. No markdown headings, code fences, or snippet labels.

## Reply Format

Reply with a single JSON object:
{{"answer": "...", "citations": ["<chunkId>", ...], "confidence": "low|med|high", "needsReview": true|false}}
"""

USER_PROMPT_TEMPLATE = """## Evidence

{evidence}

## Question

{question}
"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def format_evidence(snippets: Sequence[SnippetRef]) -> str:
    """Render snippets as the evidence block of the prompt."""
    blocks = []
    for number, snippet in enumerate(snippets, start=1):
        blocks.append(
            f"Snippet {number}\n"
            f"chunkId: {snippet.chunk_id}\n"
            f"docName: {snippet.doc_name}\n"
            f"text: {snippet.quoted_snippet}"
        )
    return "\n\n".join(blocks)


def _load_json(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Some models wrap the object in prose or a fence
        match = _JSON_OBJECT.search(text)
        if not match:
            raise GenerationError(
                f"Model reply is not JSON: {truncate_text(text, 120)!r}"
            )
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise GenerationError(f"Model reply is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise GenerationError("Model reply is not a JSON object")
    return data


def _parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return default


def _parse_citation_ids(data: Dict[str, Any], limit: int) -> List[str]:
    raw = data.get("citations")
    if raw is None:
        raw = data.get("citationChunkIds")
    if not isinstance(raw, list):
        return []

    ids: List[str] = []
    for item in raw:
        if isinstance(item, dict):
            item = item.get("chunkId")
        chunk_id = str(item).strip() if item is not None else ""
        if chunk_id and chunk_id not in ids:
            ids.append(chunk_id)
        if len(ids) >= limit:
            break
    return ids


def parse_grounded_reply(
    text: str, max_citations: int = DEFAULT_MAX_CITATIONS
) -> GroundedDraft:
    """Parse a JSON model reply into a GroundedDraft.

    Raises:
        GenerationError: If the reply is not a JSON object
    """
    data = _load_json(text)
    answer = data.get("answer")
    return GroundedDraft(
        answer=str(answer).strip() if answer is not None else "",
        citation_chunk_ids=_parse_citation_ids(data, max_citations),
        confidence=Confidence.parse(data.get("confidence")),
        needs_review=_parse_bool(data.get("needsReview"), default=True),
    )


class GroundedAnswerGenerator:
    """
    AnswerGenerator backed by a chat model.

    Example:
        generator = GroundedAnswerGenerator(OpenAIClient())
        draft = generator.generate("Is TLS 1.2 enforced?", snippets)
    """

    def __init__(
        self,
        llm: LLMClient,
        max_citations: int = DEFAULT_MAX_CITATIONS,
        config: Optional[GenerationConfig] = None,
    ) -> None:
        self.llm = llm
        self.max_citations = max_citations
        self.config = config or GenerationConfig(json_mode=True)

    def build_user_prompt(self, question: str, snippets: Sequence[SnippetRef]) -> str:
        return USER_PROMPT_TEMPLATE.format(
            evidence=format_evidence(snippets), question=question.strip()
        )

    def generate(self, question: str, snippets: Sequence[SnippetRef]) -> GroundedDraft:
        reply = self.llm.generate_with_context(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=self.build_user_prompt(question, snippets),
            config=self.config,
        )
        draft = parse_grounded_reply(reply, self.max_citations)
        logger.debug(
            "Draft generated",
            model=self.llm.model_name,
            citations=len(draft.citation_chunk_ids),
            confidence=draft.confidence.value,
        )
        return draft
