"""Shared helpers with no dependencies on other AnswerForge layers."""
