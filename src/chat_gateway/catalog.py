"""
Model catalog aggregation across providers.

Every adapter is asked for its models concurrently. A provider that fails or
times out contributes nothing; the call as a whole fails only when nothing
at all came back.
"""

import asyncio
import logging
from typing import Dict, List, Sequence

from opentelemetry import trace

from .core.config import DEFAULT_LIST_MODELS_TIMEOUT
from .core.errors import NoProvidersAvailableError
from .core.interface import AbstractProviderAdapter
from .models.response import ModelDescriptor

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ModelCatalog:
    """Fan-out/fan-in model listing over a fixed set of adapters."""

    def __init__(
        self,
        adapters: Sequence[AbstractProviderAdapter],
        timeout: float = DEFAULT_LIST_MODELS_TIMEOUT,
    ):
        self._adapters = list(adapters)
        self._timeout = timeout

    async def _list_one(self, adapter: AbstractProviderAdapter) -> List[ModelDescriptor]:
        return await asyncio.wait_for(adapter.list_models(), timeout=self._timeout)

    async def list_all_models(self) -> List[ModelDescriptor]:
        """
        List models from every provider.

        Returns:
            Models in provider declaration order, then the order each
            adapter reported them. The same model id may appear under
            several providers.

        Raises:
            NoProvidersAvailableError: If every provider failed or returned
                no models
        """
        with tracer.start_as_current_span("list_all_models") as span:
            results = await asyncio.gather(
                *(self._list_one(adapter) for adapter in self._adapters),
                return_exceptions=True,
            )

            models: List[ModelDescriptor] = []
            failures: Dict[str, str] = {}

            for adapter, result in zip(self._adapters, results):
                if isinstance(result, asyncio.TimeoutError):
                    logger.warning(f"{adapter.name}: model listing timed out after {self._timeout}s")
                    failures[adapter.name] = "timeout"
                elif isinstance(result, Exception):
                    logger.warning(f"{adapter.name}: model listing failed: {result}")
                    failures[adapter.name] = str(result)
                elif isinstance(result, BaseException):
                    raise result
                else:
                    logger.debug(f"{adapter.name}: {len(result)} models")
                    models.extend(result)

            span.set_attribute("provider_count", len(self._adapters))
            span.set_attribute("failed_providers", len(failures))
            span.set_attribute("model_count", len(models))

            if not models:
                raise NoProvidersAvailableError(failures=failures)

            logger.info(
                f"Listed {len(models)} models from "
                f"{len(self._adapters) - len(failures)}/{len(self._adapters)} providers"
            )
            return models
