"""Timeout- and retry-guarded wrappers around caller-supplied backends.

The extraction core never talks to an embedding or text-generation API
directly. Callers hand in plain callables; the wrappers here add a per-call
timeout, bounded retries with exponential backoff for retryable failures, and
cancellation checks before every attempt.
"""

from __future__ import annotations

import math
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from ..config.policies import LLMPolicy
from ..entities.core import Source
from ..errors import ProviderError, ProviderTimeoutError
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger

EmbedFn = Callable[[str], Sequence[float]]
GenerateFn = Callable[[str], str]
FetchFn = Callable[[List[str]], Iterable[Any]]

T = TypeVar("T")

_LOGGER = get_logger(module=__name__)


class _GuardedCaller:
    """Shared timeout, retry, and cancellation logic."""

    operation = "call"

    def __init__(
        self,
        *,
        timeout_seconds: Optional[float] = None,
        retry_attempts: int = 0,
        retry_backoff_seconds: float = 0.0,
        max_workers: int = 4,
    ) -> None:
        self._timeout = timeout_seconds
        self._retry_attempts = max(0, retry_attempts)
        self._backoff = max(0.0, retry_backoff_seconds)
        self._executor = (
            ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"thematic-{self.operation}")
            if timeout_seconds
            else None
        )
        self.stats: Dict[str, int] = {"calls": 0, "failures": 0, "retries": 0, "timeouts": 0}

    @classmethod
    def from_policy(cls, func: Callable[..., Any], policy: LLMPolicy, **overrides: Any):
        options: Dict[str, Any] = {
            "timeout_seconds": policy.request_timeout_seconds,
            "retry_attempts": policy.retry_attempts,
            "retry_backoff_seconds": policy.retry_backoff_seconds,
        }
        options.update(overrides)
        return cls(func, **options)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _invoke_once(self, func: Callable[..., T], *args: Any) -> T:
        if self._executor is None:
            return func(*args)
        future = self._executor.submit(func, *args)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeoutError:
            future.cancel()
            self.stats["timeouts"] += 1
            raise ProviderTimeoutError(
                f"{self.operation} exceeded timeout of {self._timeout:.1f}s"
            ) from None

    def _call(
        self,
        func: Callable[..., T],
        *args: Any,
        cancellation: Optional[CancellationToken] = None,
    ) -> T:
        total_attempts = 1 + self._retry_attempts
        backoff = self._backoff
        for attempt in range(total_attempts):
            if cancellation is not None:
                cancellation.raise_if_cancelled()
            self.stats["calls"] += 1
            try:
                return self._invoke_once(func, *args)
            except ProviderError as exc:
                error = exc
            except Exception as exc:
                error = ProviderError(f"{self.operation} failed: {exc}", retryable=False)
                error.__cause__ = exc
            self.stats["failures"] += 1
            if not error.retryable or attempt >= total_attempts - 1:
                raise error
            self.stats["retries"] += 1
            _LOGGER.warning(
                "Retrying external call",
                operation=self.operation,
                attempt=attempt + 1,
                error=str(error),
            )
            if backoff > 0:
                time.sleep(backoff)
                backoff *= 2
        raise ProviderError(f"{self.operation} failed without an attempt")  # pragma: no cover


class EmbeddingClient(_GuardedCaller):
    """Wraps ``embed(text) -> vector`` with validation of the returned vector."""

    operation = "embed"

    def __init__(self, embed: EmbedFn, **options: Any) -> None:
        super().__init__(**options)
        self._embed = embed
        self.dimensions: Optional[int] = None

    def embed(self, text: str, *, cancellation: Optional[CancellationToken] = None) -> List[float]:
        raw = self._call(self._embed, text, cancellation=cancellation)
        vector = _coerce_vector(raw)
        if self.dimensions is None:
            self.dimensions = len(vector)
        elif len(vector) != self.dimensions:
            raise ProviderError(
                f"embedding dimension changed from {self.dimensions} to {len(vector)}"
            )
        return vector


class TextGenerator(_GuardedCaller):
    """Wraps ``generate(prompt) -> text``."""

    operation = "generate"

    def __init__(self, generate: GenerateFn, **options: Any) -> None:
        super().__init__(**options)
        self._generate = generate

    def generate(self, prompt: str, *, cancellation: Optional[CancellationToken] = None) -> str:
        result = self._call(self._generate, prompt, cancellation=cancellation)
        if not isinstance(result, str):
            raise ProviderError(f"generate returned {type(result).__name__}, expected str")
        return result


class SourceFetcher(_GuardedCaller):
    """Wraps ``fetch(ids) -> records`` and normalises records into :class:`Source`."""

    operation = "fetch"

    def __init__(self, fetch: FetchFn, **options: Any) -> None:
        super().__init__(**options)
        self._fetch = fetch

    def fetch(
        self, source_ids: Sequence[str], *, cancellation: Optional[CancellationToken] = None
    ) -> List[Source]:
        records = self._call(self._fetch, list(source_ids), cancellation=cancellation)
        sources: List[Source] = []
        for record in records or []:
            if isinstance(record, Source):
                sources.append(record)
            elif isinstance(record, Mapping):
                sources.append(Source.from_mapping(record))
            else:
                raise ProviderError(f"fetch returned unsupported record {type(record).__name__}")
        return sources


def _coerce_vector(raw: Any) -> List[float]:
    if raw is None:
        raise ProviderError("embedding backend returned no vector")
    try:
        vector = [float(value) for value in raw]
    except (TypeError, ValueError) as exc:
        raise ProviderError(f"embedding backend returned a non-numeric vector: {exc}") from exc
    if not vector:
        raise ProviderError("embedding backend returned an empty vector")
    if not all(math.isfinite(value) for value in vector):
        raise ProviderError("embedding backend returned non-finite values")
    return vector


__all__ = ["EmbeddingClient", "TextGenerator", "SourceFetcher", "EmbedFn", "GenerateFn", "FetchFn"]
