"""AnswerForge - Evidence-grounded answering for security questionnaires.

This package answers free-text questions from previously ingested evidence
documents and refuses to answer when the evidence does not support a claim.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
