"""
Concurrent connectivity probing.
"""

import asyncio
import logging
from typing import Dict, Sequence, Union

from opentelemetry import trace

from .core.config import DEFAULT_PROBE_TIMEOUT
from .core.interface import AbstractProviderAdapter
from .models.provider import ProviderId

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ConnectivityMap = Dict[ProviderId, bool]


class ConnectivityProber:
    """
    Per-provider reachability checks.

    Results are recomputed on every call; nothing is cached here.
    """

    def __init__(
        self,
        adapters: Sequence[AbstractProviderAdapter],
        timeout: float = DEFAULT_PROBE_TIMEOUT,
    ):
        self._adapters = list(adapters)
        self._timeout = timeout

    async def _probe_one(self, adapter: AbstractProviderAdapter) -> bool:
        try:
            return bool(await asyncio.wait_for(adapter.probe(), timeout=self._timeout))
        except asyncio.TimeoutError:
            logger.debug(f"{adapter.name} probe timed out after {self._timeout}s")
            return False
        except Exception as e:
            logger.debug(f"{adapter.name} probe raised: {e}")
            return False

    async def probe_all(self) -> ConnectivityMap:
        """Probe every provider concurrently. Never raises."""
        with tracer.start_as_current_span("probe_all") as span:
            results = await asyncio.gather(*(self._probe_one(a) for a in self._adapters))
            status = {adapter.provider_id: ok for adapter, ok in zip(self._adapters, results)}

            span.set_attribute("reachable", sum(1 for ok in status.values() if ok))
            logger.debug(f"Connectivity: { {k.value: v for k, v in status.items()} }")
            return status

    async def check_connection(self, provider_id: Union[ProviderId, str]) -> bool:
        """Probe a single provider; False for a provider with no adapter."""
        for adapter in self._adapters:
            if adapter.provider_id == provider_id:
                return await self._probe_one(adapter)
        return False
