"""Prompt Template Engine - validated, versioned voice-agent prompt templates."""

__version__ = "0.1.0"

from .core.config import settings

__all__ = ["settings"]
