"""Exponential backoff with jitter, scaled per error kind.

    delay = min(max_delay, base_delay * factor(kind) * multiplier ** (attempt - 1))
            + uniform(0, jitter)

Rate-limit and server errors use larger factors than network/unknown
errors, since the remote system needs more time to recover. Kinds that are
never retried have no delay; asking for one is a programming error.

Example:
    policy = BackoffPolicy.from_options(RetryOptions(max_delay=30))
    delay = policy.next_delay(ErrorKind.SERVER, attempt=2)
"""

from __future__ import annotations

import random
from collections.abc import Mapping

from fermata.core.config import ResilienceConfig, RetryOptions
from fermata.core.errors import ErrorKind


class BackoffPolicy:
    """Maps (error kind, failed attempt number) to a wait duration.

    Jitter is drawn independently on every call, so concurrent callers
    that fail together do not retry in lockstep.

    Attributes:
        base_delay: Base delay in seconds before per-kind scaling.
        max_delay: Cap on the exponential part of the delay.
        multiplier: Growth factor between successive delays.
        jitter: Ceiling of the uniform random jitter.
    """

    def __init__(
        self,
        base_delay: float = 1.0,
        max_delay: float = 10.0,
        multiplier: float = 2.0,
        jitter: float = 1.0,
        factors: Mapping[ErrorKind, float] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the policy.

        Args:
            base_delay: Base delay in seconds.
            max_delay: Cap on the exponential part.
            multiplier: Exponential growth factor.
            jitter: Jitter ceiling in seconds (0 disables jitter).
            factors: Per-kind overrides of the base-delay factor.
            rng: Injectable Random instance for deterministic testing.
        """
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if max_delay < base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if jitter < 0:
            raise ValueError("jitter must be >= 0")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.multiplier = multiplier
        self.jitter = jitter
        self._factors = dict(factors or {})
        self._rng = rng or random.Random()

    @classmethod
    def from_options(
        cls,
        options: RetryOptions,
        factors: Mapping[ErrorKind, float] | None = None,
        rng: random.Random | None = None,
    ) -> BackoffPolicy:
        """Build a policy from retry options."""
        return cls(
            base_delay=options.base_delay,
            max_delay=options.max_delay,
            multiplier=options.backoff_multiplier,
            jitter=options.jitter,
            factors=factors,
            rng=rng,
        )

    @classmethod
    def from_config(
        cls,
        config: ResilienceConfig,
        rng: random.Random | None = None,
    ) -> BackoffPolicy:
        """Build a policy from loaded configuration, including per-kind factors.

        Example:
            config = ResilienceConfig.from_yaml(Path("resilience.yaml"))
            policy = BackoffPolicy.from_config(config)
            await with_settled(ops, config.settle, backoff=policy)
        """
        return cls.from_options(config.retry, config.backoff_factors, rng)

    def base_delay_for(self, kind: ErrorKind) -> float:
        """Get the unscaled-by-attempt base delay for an error kind.

        Raises:
            ValueError: If the kind is never retried.
        """
        factor = self._factors.get(kind, kind.get_behavior().backoff_factor)
        if kind.never_retryable or factor is None:
            raise ValueError(f"{kind.value} errors are never retried; no backoff delay exists")
        return self.base_delay * factor

    def next_delay(self, kind: ErrorKind, attempt: int) -> float:
        """Compute the wait before the attempt following ``attempt``.

        Args:
            kind: Kind of the error the failed attempt produced.
            attempt: 1-based number of the attempt that just failed.

        Returns:
            Delay in seconds, including jitter.

        Raises:
            ValueError: If attempt < 1 or the kind is never retried.
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        base = self.base_delay_for(kind)
        # Exponent growth is bounded by the cap, so stop multiplying once past it.
        delay = base
        for _ in range(attempt - 1):
            if delay >= self.max_delay:
                break
            delay *= self.multiplier
        delay = min(delay, self.max_delay)
        return delay + self._rng.uniform(0, self.jitter)


_default_policy = BackoffPolicy()


def next_delay(kind: ErrorKind, attempt: int) -> float:
    """Compute a backoff delay with the default policy."""
    return _default_policy.next_delay(kind, attempt)
