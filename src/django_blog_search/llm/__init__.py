from .base import LLMService

__all__ = ["LLMService"]
