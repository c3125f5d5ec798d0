"""
Tests for the answerforge command line.

Commands run through typer's CliRunner against a temporary project
directory. The OpenAI collaborators are replaced with the keyword
embedder and the scripted generator.

Organization
------------
- TestApp: Version and help
- TestEvidenceCommands: ingest and embed
- TestAsk: Single question answering
- TestQuestionnaireCommands: import, autofill, rerun, status, archive
- TestReviewCommands: questions, approve, unapprove, review, approve-reused
- TestReadQuestions: Question file parsing
"""

import asyncio
import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from answerforge import __version__
from answerforge.autofill.factory import create_components
from answerforge.cli.commands.questionnaires import read_questions
from answerforge.cli.main import app
from answerforge.core.config import load_config
from answerforge.core.exceptions import NotFoundError
from answerforge.storage.sqlite import SQLiteStore
from tests.fixtures.fakes import (
    CONTINUITY_PLAN,
    FOUND_QUESTION,
    MISSING_QUESTION,
    ORG,
    SECURITY_POLICY,
    FakeEmbedder,
    ScriptedGenerator,
)

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Project directory with evidence files and fake collaborators."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "answerforge.yaml").write_text(
        "autofill:\n  question_delay_seconds: 0\n", encoding="utf-8"
    )
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "security.md").write_text(SECURITY_POLICY, encoding="utf-8")
    (docs / "continuity.txt").write_text(CONTINUITY_PLAN, encoding="utf-8")
    (docs / "diagram.png").write_bytes(b"\x89PNG")

    def fake_components(config):
        return create_components(
            config, embedder=FakeEmbedder(), generator=ScriptedGenerator()
        )

    monkeypatch.setattr("answerforge.cli.context.create_components", fake_components)
    return tmp_path


def invoke(*args: str):
    return runner.invoke(app, list(args))


def ingest_docs() -> None:
    result = invoke("ingest", "docs", "--org", ORG)
    assert result.exit_code == 0, result.output


def import_questionnaire(project: Path, questions) -> str:
    path = project / "questions.txt"
    path.write_text("\n".join(questions) + "\n", encoding="utf-8")
    result = invoke("import-questions", str(path), "--org", ORG)
    assert result.exit_code == 0, result.output
    match = re.search(r"Questionnaire id: (\w+)", result.output)
    assert match, result.output
    return match.group(1)


class TestApp:
    """Tests for the top-level callback."""

    def test_version(self):
        result = invoke("--version")

        assert result.exit_code == 0
        assert f"AnswerForge {__version__}" in result.output

    def test_help_lists_commands(self):
        result = invoke("--help")

        assert result.exit_code == 0
        for command in ("ingest", "ask", "autofill", "rerun-missing"):
            assert command in result.output


class TestEvidenceCommands:
    """Tests for ingest and embed."""

    def test_ingest_directory(self, project):
        result = invoke("ingest", "docs", "--org", ORG)

        assert result.exit_code == 0, result.output
        assert "security.md" in result.output
        assert "continuity.txt" in result.output
        assert "diagram.png" not in result.output
        assert "Embedded" in result.output

    def test_ingest_without_embedding_then_embed(self, project):
        result = invoke("ingest", "docs/security.md", "--org", ORG, "--no-embed")
        assert result.exit_code == 0, result.output
        assert "answerforge embed" in result.output

        result = invoke("embed", "--org", ORG)

        assert result.exit_code == 0, result.output
        assert "Embedded 1 chunk(s)" in result.output

    def test_missing_path(self, project):
        result = invoke("ingest", "nowhere", "--org", ORG)

        assert result.exit_code == 1
        assert "AF-NF-001" in result.output

    def test_directory_without_supported_files(self, project):
        (project / "empty").mkdir()

        result = invoke("ingest", "empty", "--org", ORG)

        assert result.exit_code == 1
        assert "No supported files" in result.output


class TestAsk:
    """Tests for the ask command."""

    def test_plain_answer(self, project):
        ingest_docs()

        result = invoke("ask", FOUND_QUESTION, "--org", ORG, "--plain")

        assert result.exit_code == 0, result.output
        assert "MFA is enforced for all administrators." in result.output
        assert "Confidence: high" in result.output
        assert "Sources: security.md" in result.output

    def test_not_found_answer(self, project):
        ingest_docs()

        result = invoke("ask", MISSING_QUESTION, "--org", ORG, "--plain")

        assert result.exit_code == 0, result.output
        assert "Not specified in provided documents." in result.output
        assert "Sources:" not in result.output

    def test_debug_prints_trace(self, project):
        ingest_docs()

        result = invoke("ask", FOUND_QUESTION, "--org", ORG, "--debug")

        assert result.exit_code == 0, result.output
        assert "retrieved_top_k" in result.output


class TestQuestionnaireCommands:
    """Tests for questionnaire commands."""

    def test_import_autofill_status(self, project):
        ingest_docs()
        questionnaire_id = import_questionnaire(
            project, [FOUND_QUESTION, "", MISSING_QUESTION]
        )

        result = invoke("autofill", questionnaire_id, "--org", ORG)
        assert result.exit_code == 0, result.output
        assert "COMPLETED" in result.output

        result = invoke("status", questionnaire_id, "--org", ORG)
        assert result.exit_code == 0, result.output
        assert "2/2" in result.output

    def test_autofill_respects_max_batches(self, project):
        ingest_docs()
        questionnaire_id = import_questionnaire(project, [FOUND_QUESTION] * 3)

        result = invoke(
            "autofill",
            questionnaire_id,
            "--org",
            ORG,
            "--batch-size",
            "1",
            "--max-batches",
            "1",
        )

        assert result.exit_code == 0, result.output
        assert "RUNNING" in result.output
        assert "max batches reached" in result.output

    def test_autofill_requires_embedded_evidence(self, project):
        questionnaire_id = import_questionnaire(project, [FOUND_QUESTION])

        result = invoke("autofill", questionnaire_id, "--org", ORG)

        assert result.exit_code == 1
        assert "AF-VAL-002" in result.output

    def test_rerun_missing(self, project):
        ingest_docs()
        questionnaire_id = import_questionnaire(project, [MISSING_QUESTION])
        invoke("autofill", questionnaire_id, "--org", ORG)

        result = invoke("rerun-missing", questionnaire_id, "--org", ORG)

        assert result.exit_code == 0, result.output
        assert "rerun-missing run" in result.output

    def test_unknown_questionnaire(self, project):
        result = invoke("status", "missing", "--org", ORG)

        assert result.exit_code == 1
        assert "AF-NF-001" in result.output

    def test_archive(self, project):
        questionnaire_id = import_questionnaire(project, [FOUND_QUESTION])

        assert invoke("archive", questionnaire_id).exit_code == 0
        assert invoke("status", questionnaire_id, "--org", ORG).exit_code == 1
        assert invoke("archive", questionnaire_id).exit_code == 1


class TestReviewCommands:
    """Tests for questions, approve, unapprove, review, and approve-reused."""

    def answered_rows(self, project, questions):
        ingest_docs()
        questionnaire_id = import_questionnaire(project, questions)
        result = invoke("autofill", questionnaire_id, "--org", ORG)
        assert result.exit_code == 0, result.output
        store = SQLiteStore(load_config().db_path)
        return questionnaire_id, asyncio.run(store.list_questions(questionnaire_id))

    def test_questions_lists_rows(self, project):
        questionnaire_id, _ = self.answered_rows(project, [FOUND_QUESTION])

        result = invoke("questions", questionnaire_id, "--org", ORG)

        assert result.exit_code == 0, result.output
        assert "DRAFT" in result.output

    def test_approve_then_reuse(self, project):
        _, rows = self.answered_rows(project, [FOUND_QUESTION])

        result = invoke("approve", rows[0].id, "--org", ORG, "--note", "checked")
        assert result.exit_code == 0, result.output
        assert "Approved" in result.output

        questionnaire_id = import_questionnaire(project, [FOUND_QUESTION])
        result = invoke("autofill", questionnaire_id, "--org", ORG)
        assert result.exit_code == 0, result.output
        assert "Reused approvals" in result.output

        result = invoke("approve-reused", questionnaire_id, "--org", ORG)
        assert result.exit_code == 0, result.output
        assert "Approved 1 of 1 exact reuse(s)" in result.output

    def test_approve_not_found_answer_fails(self, project):
        _, rows = self.answered_rows(project, [MISSING_QUESTION])

        result = invoke("approve", rows[0].id, "--org", ORG)

        assert result.exit_code == 1
        assert "AF-VAL" in result.output

    def test_unapprove_and_review(self, project):
        _, rows = self.answered_rows(project, [FOUND_QUESTION])
        invoke("approve", rows[0].id, "--org", ORG)

        result = invoke("unapprove", rows[0].id, "--org", ORG)
        assert result.exit_code == 0, result.output
        assert "Approval removed" in result.output

        result = invoke("review", rows[0].id, "--org", ORG, "--status", "needs-review")
        assert result.exit_code == 0, result.output
        assert "NEEDS_REVIEW" in result.output

    def test_unknown_question(self, project):
        result = invoke("approve", "missing", "--org", ORG)

        assert result.exit_code == 1
        assert "AF-NF-001" in result.output


class TestReadQuestions:
    """Tests for read_questions()."""

    def test_one_question_per_line(self, tmp_path: Path):
        path = tmp_path / "questions.txt"
        path.write_text("  Q1 \n\nQ2\n   \n", encoding="utf-8")

        assert read_questions(path) == ["Q1", "Q2"]

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(NotFoundError):
            read_questions(tmp_path / "missing.txt")
