"""Shared test doubles for AnswerForge tests."""
