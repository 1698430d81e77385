"""
Runtime discovery of tool-calling support, per provider/model(/endpoint).

Vendors do not reliably advertise whether a model can call tools, so the
answer is learned from observed outcomes and kept in a ``ToolCapabilityCache``
for the lifetime of the process. The application creates one cache at startup
and hands it to whoever observes outcomes and whoever asks
``should_use_tools``.
"""

from __future__ import annotations

import logging
import threading
from enum import StrEnum
from typing import Final, Optional

from llm_relay.providers import LOCAL_PROVIDERS
from llm_relay.providers.base import is_tool_capable
from llm_relay.providers.ollama import normalize_ollama_url

__all__ = [
    "ToolCapability",
    "ToolCapabilityCache",
    "NOT_OBSERVED_THRESHOLD",
    "capability_key",
    "should_use_tools",
]

_logger = logging.getLogger(__name__)

# consecutive tool-less answers before a key is marked not_observed
NOT_OBSERVED_THRESHOLD: Final = 2


class ToolCapability(StrEnum):
    UNKNOWN = "unknown"
    SUPPORTED = "supported"
    NOT_SUPPORTED = "not_supported"
    NOT_OBSERVED = "not_observed"


def capability_key(provider: str, model: str, endpoint: Optional[str] = None) -> str:
    """
    Build the cache key for a provider/model pair.

    Local servers include the endpoint: the same model name served by a
    different server (or server version) is a separate capability. The
    endpoint is normalized, so spellings of the same server share a key.
    """
    if provider in LOCAL_PROVIDERS:
        if endpoint:
            endpoint = normalize_ollama_url(endpoint)
        return f"{provider}:{model}:{endpoint or ''}"
    return f"{provider}:{model}"


class ToolCapabilityCache:
    """Thread-safe, in-memory map of capability key -> ToolCapability."""

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self._states: dict[str, ToolCapability] = {}
        self._not_observed: dict[str, int] = {}
        self._lock = threading.Lock()
        self.logger = logger or _logger

    def get(
        self, provider: str, model: str, endpoint: Optional[str] = None
    ) -> ToolCapability:
        return self.get_by_key(capability_key(provider, model, endpoint))

    def get_by_key(self, key: str) -> ToolCapability:
        with self._lock:
            return self._states.get(key, ToolCapability.UNKNOWN)

    def set(
        self,
        provider: str,
        model: str,
        state: ToolCapability | str,
        endpoint: Optional[str] = None,
    ) -> None:
        self.set_by_key(capability_key(provider, model, endpoint), state)

    def set_by_key(self, key: str, state: ToolCapability | str) -> None:
        state = ToolCapability(state)
        with self._lock:
            previous = self._states.get(key, ToolCapability.UNKNOWN)
            self._states[key] = state
        if previous != state:
            self.logger.info("capability_cache_update key=%s status=%s", key, state)

    def not_observed_count(self, key: str) -> int:
        with self._lock:
            return self._not_observed.get(key, 0)

    # --- outcome recorders ------------------------------------------------
    def record_tool_use(self, key: str) -> None:
        """The model emitted tool calls; ambiguous outcomes start over."""
        with self._lock:
            self._not_observed[key] = 0

    def record_supported(self, key: str) -> None:
        """Tool calls were emitted and executed."""
        self.set_by_key(key, ToolCapability.SUPPORTED)

    def record_not_supported(self, key: str) -> None:
        self.set_by_key(key, ToolCapability.NOT_SUPPORTED)

    def record_no_tool_call(self, key: str) -> int:
        """
        The model answered without calling a tool although tools were offered.

        Returns the updated counter. Once it reaches ``NOT_OBSERVED_THRESHOLD``
        the key is marked ``not_observed``.
        """
        with self._lock:
            count = self._not_observed.get(key, 0) + 1
            self._not_observed[key] = count
        if count >= NOT_OBSERVED_THRESHOLD:
            self.set_by_key(key, ToolCapability.NOT_OBSERVED)
        return count

    # --- housekeeping -----------------------------------------------------
    def clear(self) -> None:
        with self._lock:
            self._states.clear()
            self._not_observed.clear()

    def snapshot(self) -> dict[str, ToolCapability]:
        with self._lock:
            return dict(self._states)

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._states


def should_use_tools(
    provider: object,
    provider_key: str,
    model_key: str,
    cache: ToolCapabilityCache,
    *,
    endpoint: Optional[str] = None,
    force_tool_attempt: bool = False,
) -> bool:
    """
    Decide whether the next turn should be sent with tool definitions.

    ``unknown`` always gets one attempt so the capability can be discovered;
    ``not_observed`` is skipped unless the caller forces another try.
    """
    if not is_tool_capable(provider):
        return False

    state = cache.get(provider_key, model_key, endpoint)
    if state in (ToolCapability.UNKNOWN, ToolCapability.SUPPORTED):
        return True
    if state is ToolCapability.NOT_OBSERVED:
        return force_tool_attempt
    return False
