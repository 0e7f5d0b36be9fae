from __future__ import annotations  # Response provider exports and selection

import random
from pathlib import Path
from typing import Optional

from config import PROVIDER_KEY, Settings, get_model, is_bound, settings as default_settings

from .base import ResponseProvider, ResponseRequest
from .canned import CANNED_REPLIES, CannedResponseProvider
from .llm import LlmResponseProvider, build_messages, provider_from_config


def resolve_provider(cfg: Optional[Settings] = None) -> ResponseProvider:
    """Return the bound provider factory's product, else the configured one."""

    if is_bound(PROVIDER_KEY):
        return get_model(PROVIDER_KEY)()
    cfg = cfg or default_settings
    if cfg.RESPONSE_PROVIDER == "llm":
        return provider_from_config(Path(cfg.LLM_CONFIG_PATH), cfg.LLM_ROUTE_KEY)
    return CannedResponseProvider(
        rng=random.Random(),
        min_delay_s=cfg.PROVIDER_DELAY_MIN_S,
        max_delay_s=max(cfg.PROVIDER_DELAY_MIN_S, cfg.PROVIDER_DELAY_MAX_S),
    )


__all__ = [
    "CANNED_REPLIES",
    "CannedResponseProvider",
    "LlmResponseProvider",
    "ResponseProvider",
    "ResponseRequest",
    "build_messages",
    "provider_from_config",
    "resolve_provider",
]
