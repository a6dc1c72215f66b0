"""Bounded retry with exponential backoff."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Tuple, Type, TypeVar

from .errors import RetryError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try a call and how long to wait in between."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        sleep: Callable[[float], None] = time.sleep,
        **kwargs: Any,
    ) -> T:
        """
        Call ``func`` until it returns, up to ``max_attempts`` times.

        Args:
            func: Callable to invoke
            *args: Positional arguments for ``func``
            sleep: Function used to wait between attempts
            **kwargs: Keyword arguments for ``func``

        Returns:
            The first value ``func`` returns without raising

        Raises:
            RetryError: If every attempt raised one of ``retry_on``
        """
        attempt = 1
        while True:
            try:
                return func(*args, **kwargs)
            except self.retry_on as e:
                logger.info(
                    f"Attempt {attempt}/{self.max_attempts} of "
                    f"{getattr(func, '__name__', 'call')} failed: {e}"
                )
                if attempt >= self.max_attempts:
                    raise RetryError(attempt, e) from e
                sleep(self.delay_for(attempt))
                attempt += 1
