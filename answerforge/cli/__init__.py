"""AnswerForge command line interface."""
