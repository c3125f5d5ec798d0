"""Core services shared by every AnswerForge layer.

Logging, exceptions, retry, and configuration live here.
"""
