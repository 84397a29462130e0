"""Chat models for resume extraction and the AI suspicion audit.

Provider, model names, keys and temperature all come from Settings. In
"auto" mode providers are tried in PROVIDER_ORDER and the first one that
answers wins.
"""

from __future__ import annotations
import logging
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_mistralai import ChatMistralAI

from .config import Settings, get_settings
from .errors import ProviderUnavailable

logger = logging.getLogger(__name__)

PROVIDER_ORDER = ("gemini", "mistral")


def normalize_provider(name: Optional[str]) -> str:
    name = (name or "").strip().lower()
    return name if name in PROVIDER_ORDER else "auto"


def _temperature(settings: Settings, temperature: Optional[float]) -> float:
    return settings.LLM_TEMPERATURE if temperature is None else temperature


def build_gemini(settings: Optional[Settings] = None, temperature: Optional[float] = None) -> ChatGoogleGenerativeAI:
    settings = settings or get_settings()
    key = settings.GEMINI_API_KEY or settings.GOOGLE_API_KEY
    if not key:
        raise ProviderUnavailable("gemini: GEMINI_API_KEY (or GOOGLE_API_KEY) is not set")
    return ChatGoogleGenerativeAI(
        model=settings.GEMINI_MODEL,
        temperature=_temperature(settings, temperature),
        google_api_key=key,
    )


def build_mistral(settings: Optional[Settings] = None, temperature: Optional[float] = None) -> ChatMistralAI:
    settings = settings or get_settings()
    if not settings.MISTRAL_API_KEY:
        raise ProviderUnavailable("mistral: MISTRAL_API_KEY is not set")
    return ChatMistralAI(
        model=settings.MISTRAL_MODEL,
        temperature=_temperature(settings, temperature),
        api_key=settings.MISTRAL_API_KEY,
    )


BUILDERS: Dict[str, Callable[..., Any]] = {
    "gemini": build_gemini,
    "mistral": build_mistral,
}


class FailoverChatModel:
    """Walks the configured providers in order until one answers.

    A provider is built on first use and kept; one that fails to build is
    tried again on the next call.
    """

    def __init__(self, providers: Sequence[Tuple[str, Callable[[], Any]]]):
        self.providers = list(providers)
        self._models: Dict[str, Any] = {}

    def _model(self, name: str, build: Callable[[], Any]) -> Any:
        if name not in self._models:
            self._models[name] = build()
        return self._models[name]

    def invoke(self, messages: List[Any]) -> Any:
        failures: List[str] = []
        last_exc: Optional[Exception] = None
        for name, build in self.providers:
            try:
                return self._model(name, build).invoke(messages)
            except Exception as e:
                logger.warning("LLM provider %s failed, trying the next one: %s", name, e)
                failures.append(f"{name}: {e}")
                last_exc = e
        raise ProviderUnavailable("All providers failed: " + "; ".join(failures)) from last_exc


def get_llm(
    settings: Optional[Settings] = None,
    provider: Optional[str] = None,
    temperature: Optional[float] = None,
) -> Any:
    settings = settings or get_settings()
    chosen = normalize_provider(provider or settings.LLM_PROVIDER)
    if chosen != "auto":
        return BUILDERS[chosen](settings, temperature)
    return FailoverChatModel([(name, partial(BUILDERS[name], settings, temperature)) for name in PROVIDER_ORDER])
