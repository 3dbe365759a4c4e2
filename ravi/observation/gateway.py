"""Provider gateway: bounded-wait calls, retries and parallel fan-out.

Every call made through the gateway either returns usable text or the
empty-string fallback. Timeouts are soft: a call that loses the race against
its timer is abandoned rather than cancelled, so it keeps running in the
background and its eventual result is dropped.
"""

import asyncio
import time
from collections.abc import Awaitable, Sequence
from typing import TYPE_CHECKING, TypeVar

import structlog

from ravi.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
)
from ravi.observation.models import (
    ProviderCall,
    ProviderFailure,
    ProviderResponse,
    ProviderType,
)
from ravi.observation.providers import ProviderConfig, TextProvider, get_provider

if TYPE_CHECKING:
    from ravi.config import Settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Abandoned calls, held until they finish so they are not garbage collected
_background_tasks: set[asyncio.Task] = set()


def _forget_task(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.debug("abandoned_call_failed", error=str(task.exception()))


def pending_background_tasks() -> int:
    """Number of abandoned calls still running."""
    return len(_background_tasks)


async def with_timeout(awaitable: Awaitable[T], seconds: float, fallback: T) -> T:
    """Race ``awaitable`` against a timer.

    Returns the awaitable's result if it finishes within ``seconds``, else
    ``fallback``. The losing call is not cancelled. Exceptions raised by a
    call that finishes in time propagate to the caller.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=seconds)
    if task in done:
        return task.result()

    _background_tasks.add(task)
    task.add_done_callback(_forget_task)
    return fallback


class ProviderGateway:
    """Uniform access to the configured text-generation providers.

    Only providers handed to the constructor are callable. Anything else is
    treated as not configured and short-circuits to the fallback without a
    network call.
    """

    def __init__(
        self,
        providers: dict[ProviderType, TextProvider],
        max_attempts: int = 3,
        retry_base_seconds: float = 1.0,
        retry_max_seconds: float = 8.0,
        batch_size: int | None = None,
        batch_delay_seconds: float = 0.5,
    ):
        self.providers = dict(providers)
        self.max_attempts = max(1, max_attempts)
        self.retry_base_seconds = retry_base_seconds
        self.retry_max_seconds = retry_max_seconds
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ProviderGateway":
        """Build a gateway for every provider with a valid credential."""
        providers: dict[ProviderType, TextProvider] = {}
        for provider_type in settings.configured_providers():
            providers[provider_type] = get_provider(
                provider_type,
                ProviderConfig(
                    api_key=settings.api_key_for(provider_type) or "",
                    model=settings.model_for(provider_type),
                    timeout_seconds=settings.full_timeout_seconds,
                    max_tokens=settings.provider_max_tokens,
                ),
            )

        logger.info(
            "provider_gateway_created",
            configured=[p.value for p in providers],
            skipped=[p.value for p in ProviderType.real() if p not in providers],
        )

        return cls(
            providers,
            max_attempts=settings.provider_max_attempts,
            retry_base_seconds=settings.provider_retry_base_seconds,
            retry_max_seconds=settings.provider_retry_max_seconds,
            batch_size=settings.provider_batch_size,
            batch_delay_seconds=settings.provider_batch_delay_seconds,
        )

    @property
    def configured_providers(self) -> list[ProviderType]:
        """Callable providers, in construction order."""
        return list(self.providers)

    def is_configured(self, provider_type: ProviderType) -> bool:
        return provider_type in self.providers

    def provider(self, provider_type: ProviderType) -> TextProvider:
        """Get the provider for a kind.

        Raises:
            ProviderNotConfiguredError: if the kind has no usable credential
        """
        provider = self.providers.get(provider_type)
        if provider is None:
            raise ProviderNotConfiguredError(provider_type.value)
        return provider

    async def generate(self, provider_type: ProviderType, prompt: str, timeout: float) -> str:
        """Generate text, returning "" on timeout, error or missing config."""
        text, _ = await self._call(provider_type, prompt, timeout)
        return text

    async def fan_out(
        self,
        calls: Sequence[ProviderCall],
        timeout: float,
    ) -> list[ProviderResponse]:
        """Run every call in parallel and wait for all of them.

        Responses come back in the same order as ``calls``. With a batch size
        set, each provider's calls run in chunks separated by a fixed delay,
        while different providers still proceed side by side.
        """
        if not calls:
            return []

        if self.batch_size is None:
            responses = await asyncio.gather(*(self._respond(call, timeout) for call in calls))
            return list(responses)

        slots: list[ProviderResponse | None] = [None] * len(calls)
        by_provider: dict[ProviderType, list[int]] = {}
        for i, call in enumerate(calls):
            by_provider.setdefault(call.provider, []).append(i)

        async def run_in_batches(indices: list[int]) -> None:
            step = self.batch_size or len(indices)
            for start in range(0, len(indices), step):
                if start:
                    await asyncio.sleep(self.batch_delay_seconds)
                chunk = indices[start : start + step]
                chunk_responses = await asyncio.gather(
                    *(self._respond(calls[i], timeout) for i in chunk)
                )
                for i, response in zip(chunk, chunk_responses, strict=True):
                    slots[i] = response

        await asyncio.gather(*(run_in_batches(ix) for ix in by_provider.values()))
        return [response for response in slots if response is not None]

    async def _respond(self, call: ProviderCall, timeout: float) -> ProviderResponse:
        started = time.perf_counter()
        text, failure = await self._call(call.provider, call.prompt, timeout)
        return ProviderResponse.from_text(
            provider=call.provider,
            query_index=call.query.index,
            text=text,
            latency_ms=(time.perf_counter() - started) * 1000,
            error=failure,
        )

    async def _call(
        self,
        provider_type: ProviderType,
        prompt: str,
        timeout: float,
    ) -> tuple[str, ProviderFailure | None]:
        try:
            provider = self.provider(provider_type)
        except ProviderNotConfiguredError as e:
            logger.debug("provider_not_configured", provider=provider_type.value)
            return "", ProviderFailure(provider_type, e.code, e.message)

        timed_out = ProviderTimeoutError(provider_type.value, timeout)
        fallback = ("", ProviderFailure(provider_type, timed_out.code, timed_out.message))

        text, failure = await with_timeout(
            self._generate_with_retry(provider_type, provider, prompt),
            timeout,
            fallback,
        )
        if failure is fallback[1]:
            logger.warning(
                "provider_call_timed_out",
                provider=provider_type.value,
                timeout_seconds=timeout,
            )
        return text, failure

    async def _generate_with_retry(
        self,
        provider_type: ProviderType,
        provider: TextProvider,
        prompt: str,
    ) -> tuple[str, ProviderFailure | None]:
        """Call a provider, backing off on rate limits. Never raises."""
        delay = self.retry_base_seconds
        failure: ProviderFailure | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                text = await provider.generate(prompt)
                return text or "", None
            except ProviderRateLimitedError as e:
                failure = ProviderFailure(provider_type, e.code, e.message, retryable=True)
                if attempt < self.max_attempts:
                    wait = min(delay, self.retry_max_seconds)
                    logger.info(
                        "provider_rate_limited",
                        provider=provider_type.value,
                        attempt=attempt,
                        retry_in_seconds=wait,
                    )
                    await asyncio.sleep(wait)
                    delay *= 2
            except ProviderError as e:
                logger.warning(
                    "provider_call_failed",
                    provider=provider_type.value,
                    code=e.code,
                    error=e.message,
                )
                return "", ProviderFailure(provider_type, e.code, e.message)
            except Exception as e:
                logger.exception("provider_call_crashed", provider=provider_type.value)
                return "", ProviderFailure(provider_type, "unexpected_error", str(e))

        logger.warning(
            "provider_retries_exhausted",
            provider=provider_type.value,
            attempts=self.max_attempts,
        )
        return "", failure
