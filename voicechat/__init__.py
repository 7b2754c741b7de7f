"""Dictation pipeline for the chat demo: microphone capture and transcription relay."""

__version__ = "0.1.0"
