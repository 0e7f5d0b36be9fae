from __future__ import annotations  # Async chat-completions gateway

import asyncio
import logging
import os
from typing import Any, Dict, Optional, Sequence

import httpx

from config import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup


_ROUTE_LOCKS: Dict[str, asyncio.Lock] = {}


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


def _lock_for(cfg: LlmRoute) -> asyncio.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    lock = _ROUTE_LOCKS.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _ROUTE_LOCKS[key] = lock
    return lock


async def chat(
    messages: Sequence[Dict[str, str]],
    *,
    cfg: LlmRoute,
    client: Optional[httpx.AsyncClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> str:  # Send chat messages on the route and return the reply text
    if cfg.sequential:
        async with _lock_for(cfg):
            return await _execute(messages, cfg=cfg, client=client, options=options)
    return await _execute(messages, cfg=cfg, client=client, options=options)


async def _execute(
    messages: Sequence[Dict[str, str]],
    *,
    cfg: LlmRoute,
    client: Optional[httpx.AsyncClient],
    options: Optional[Dict[str, Any]],
) -> str:
    base_messages = _normalize_messages(messages)
    attempts = cfg.max_retries + 1
    preview = _preview(base_messages)
    if len(preview) > 120:
        preview = preview[:117] + "..."
    logger.info(
        "LLM request start route=%s model=%s attempts=%d preview=%s",
        cfg.name,
        cfg.model,
        attempts,
        preview,
    )
    owns_client = client is None
    http_client = client or httpx.AsyncClient(timeout=cfg.timeout_s)
    last_problem: Optional[str] = None
    try:
        for attempt in range(attempts):
            attempt_messages = list(base_messages)
            if attempt > 0:
                attempt_messages.append({"role": "system", "content": _retry_hint(last_problem)})
            payload: Dict[str, Any] = {"model": cfg.model, "messages": attempt_messages}
            if cfg.temperature is not None:
                payload["temperature"] = cfg.temperature
            if options:
                payload.update(options)
            logger.info(
                "LLM request send route=%s model=%s attempt=%d/%d",
                cfg.name,
                cfg.model,
                attempt + 1,
                attempts,
            )
            try:
                response = await http_client.post(
                    f"{cfg.base_url}{cfg.endpoint}",
                    json=payload,
                    headers=_headers(cfg),
                    timeout=cfg.timeout_s,
                )
            except httpx.HTTPError as exc:
                logger.error("LLM transport failure: %s", exc)
                raise LlmGatewayError("LLM transport failed") from exc
            if response.status_code >= 400:
                logger.error("LLM error status: %s", response.status_code)
                raise LlmGatewayError(f"LLM returned status {response.status_code}")
            try:
                data = response.json()
            except ValueError as exc:
                logger.error("Invalid JSON payload from LLM: %s", exc)
                raise LlmGatewayError("LLM payload was not JSON") from exc
            content = _extract_content(data)
            if content:
                logger.info(
                    "LLM request done route=%s model=%s attempt=%d",
                    cfg.name,
                    cfg.model,
                    attempt + 1,
                )
                return content
            logger.warning("LLM returned an empty reply on attempt %d", attempt + 1)
            last_problem = "the reply was empty"
    finally:
        if owns_client:
            await http_client.aclose()
    raise LlmGatewayError("LLM returned no usable reply")


def _headers(cfg: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    return headers


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:  # Ensure message payload shape
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        content = str(item.get("content", ""))
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": content})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:  # Build preview string for logging
    for message in reversed(messages):
        text = message.get("content", "").strip()
        if text:
            return text.splitlines()[0]
    return ""


def _extract_content(data: Any) -> str:  # Extract message content from LLM response
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content.strip()
        if isinstance(data.get("content"), str):
            return data["content"].strip()
    raise LlmGatewayError("LLM response missing content")


def _retry_hint(problem: Optional[str]) -> str:  # Compose retry instructions including last problem
    base = "The previous reply could not be used."
    if problem:
        base += f" Reason: {problem}."
    return base + " Answer in character with one short spoken reply."
