"""Timeframe → ModelProvider lookup used by the prediction orchestrator."""

import logging
import threading

from tradecharts.models.base import ModelProvider

logger = logging.getLogger(__name__)


class ModelRegistry:
    """Holds at most one provider per timeframe.

    A provider is only handed out once it reports itself trained for the
    timeframe; until then the orchestrator uses its heuristic.
    """

    def __init__(self) -> None:
        self._providers: dict[str, ModelProvider] = {}
        self._lock = threading.Lock()

    def register(self, timeframe: str, provider: ModelProvider) -> None:
        with self._lock:
            self._providers[timeframe] = provider
        logger.info("Registered model provider %s for %s", provider.name, timeframe)

    def unregister(self, timeframe: str) -> None:
        with self._lock:
            self._providers.pop(timeframe, None)

    def get(self, timeframe: str) -> ModelProvider | None:
        with self._lock:
            provider = self._providers.get(timeframe)
        if provider is None or not provider.is_trained(timeframe):
            return None
        return provider

    def timeframes(self) -> list[str]:
        with self._lock:
            return sorted(self._providers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._providers)
