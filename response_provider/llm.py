from __future__ import annotations  # LLM-backed counterpart

from pathlib import Path
from textwrap import dedent
from typing import Dict, List, Optional

import httpx

from config import LlmRoute, load_config, resolve_route
from errors import ProviderError
from llm_gateway import LlmGatewayError, chat

from .base import ResponseRequest


class LlmResponseProvider:  # Plays the counterpart through a chat-completions route
    def __init__(self, route: LlmRoute, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self._route = route
        self._client = client

    async def respond(self, request: ResponseRequest) -> str:
        try:
            return await chat(build_messages(request), cfg=self._route, client=self._client)
        except LlmGatewayError as exc:
            raise ProviderError(str(exc)) from exc


def build_messages(request: ResponseRequest) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": _system_prompt(request)}]
    for line in request.transcript:
        messages.append({"role": line.role, "content": line.content})
    return messages


def _system_prompt(request: ResponseRequest) -> str:
    counterpart = request.user_role or "the user"
    return dedent(
        f"""
        You are role-playing in a spoken practice conversation.
        Your character: {request.counterpart_role}
        You are speaking with: {counterpart}
        Scenario: {request.scenario}

        Stay in character for the whole conversation. Reply with what your character
        says out loud next: one to three sentences, no stage directions, no narration.
        Push back where your character would, and concede only when you are given
        a genuinely good reason.
        """
    ).strip()


def provider_from_config(config_path: Path, route_key: str) -> LlmResponseProvider:
    cfg = load_config(config_path)
    return LlmResponseProvider(resolve_route(cfg, route_key))


__all__ = ["LlmResponseProvider", "build_messages", "provider_from_config"]
