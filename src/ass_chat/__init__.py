"""Ass Chat: streaming chat client for OpenAI-compatible backends."""

__version__ = "0.1.0"
