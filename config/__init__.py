"""Configuration package for practice conversation services."""
from .registry import PROVIDER_KEY, SCORER_KEY, bind_model, get_model, is_bound, unbind_model
from .routes import AppConfig, LlmRoute, load_config, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_config",
    "resolve_route",
    "PROVIDER_KEY",
    "SCORER_KEY",
    "bind_model",
    "get_model",
    "is_bound",
    "unbind_model",
    "Settings",
    "settings",
]
