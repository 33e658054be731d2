"""Classified delivery failures.

Every failure the clients can produce is one of four variants. Each variant
decides for itself whether another attempt is allowed, so the retry loop
never inspects messages or status codes directly.
"""

from dataclasses import dataclass, replace
from typing import ClassVar, Literal, Self

type FailureKind = Literal["network", "timeout", "api", "validation"]


@dataclass(frozen=True, kw_only=True)
class Failure:
    """Common fields of every classified failure."""

    kind: ClassVar[FailureKind]

    message: str
    request_id: str | None = None
    results_affected: int | None = None

    @property
    def retryable(self) -> bool:
        """Whether another attempt is permitted after this failure."""
        raise NotImplementedError

    def with_context(
        self, *, request_id: str | None = None, results_affected: int | None = None
    ) -> Self:
        """Return a copy carrying the correlation id and affected-record count."""
        return replace(
            self,
            request_id=request_id if request_id is not None else self.request_id,
            results_affected=(
                results_affected
                if results_affected is not None
                else self.results_affected
            ),
        )


@dataclass(frozen=True, kw_only=True)
class NetworkFailure(Failure):
    """Connection-level failure (DNS, refused, reset)."""

    kind: ClassVar[FailureKind] = "network"

    @property
    def retryable(self) -> bool:
        return True


@dataclass(frozen=True, kw_only=True)
class TimeoutFailure(Failure):
    """A single attempt exceeded its deadline."""

    kind: ClassVar[FailureKind] = "timeout"

    @property
    def retryable(self) -> bool:
        return True


@dataclass(frozen=True, kw_only=True)
class ApiFailure(Failure):
    """The API answered with a non-2xx status or an unreadable body."""

    kind: ClassVar[FailureKind] = "api"

    status_code: int

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500


@dataclass(frozen=True, kw_only=True)
class ValidationFailure(Failure):
    """Configuration rejected before any network activity."""

    kind: ClassVar[FailureKind] = "validation"

    @property
    def retryable(self) -> bool:
        return False


type RelayError = NetworkFailure | TimeoutFailure | ApiFailure | ValidationFailure
