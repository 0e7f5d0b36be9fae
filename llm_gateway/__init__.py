from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import LlmGatewayError, chat

__all__ = ["LlmGatewayError", "chat"]
