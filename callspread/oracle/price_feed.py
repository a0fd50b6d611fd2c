"""Oracle price reads — one adapter between the engine and an untrusted feed.

PriceOracleAdapter turns a latest-answer feed into a PriceObservation or an
OracleUnavailableError. A feed that raises, returns a non-integer, or
returns a non-positive answer is unavailable; nothing is retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import final

from callspread.core.errors import OracleUnavailableError
from callspread.core.result import Err, Ok
from callspread.core.types import UtcDatetime
from callspread.infra.health import HealthStatus
from callspread.infra.protocols import Clock, PriceFeed, SystemClock


@final
@dataclass(frozen=True, slots=True)
class PriceObservation:
    """A single fixed-point price read: value / 10**decimals quote units."""

    value: int
    decimals: int
    observed_at: UtcDatetime

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value <= 0:
            raise TypeError(f"PriceObservation.value must be positive int, got {self.value!r}")
        if self.decimals < 0:
            raise TypeError(f"PriceObservation.decimals must be >= 0, got {self.decimals}")

    def as_decimal(self) -> Decimal:
        """Human-scale price, e.g. 28000 for value=2_800_000_000_000, decimals=8."""
        return Decimal(self.value).scaleb(-self.decimals)


@final
class PriceOracleAdapter:
    """Read-only access to a PriceFeed with a fixed decimal precision.

    The precision is read once at construction; every observation carries it
    so payoffs and strikes are always compared on the same scale.
    """

    def __init__(self, feed: PriceFeed, clock: Clock | None = None) -> None:
        self._feed = feed
        self._clock = clock if clock is not None else SystemClock()
        self._decimals = feed.decimals()

    @property
    def decimals(self) -> int:
        return self._decimals

    @property
    def feed_name(self) -> str:
        return self._feed.description

    def _unavailable(self, detail: str) -> Err[OracleUnavailableError]:
        return Err(OracleUnavailableError(
            message=f"Price feed {self.feed_name!r} unavailable: {detail}",
            code="ORACLE_UNAVAILABLE",
            timestamp=self._clock.now(),
            source="oracle.price_feed.PriceOracleAdapter.latest_price",
            feed=self.feed_name,
        ))

    def latest_price(self) -> Ok[PriceObservation] | Err[OracleUnavailableError]:
        """Read the feed's latest answer once."""
        try:
            answer = self._feed.latest_answer()
        except Exception as exc:  # noqa: BLE001
            return self._unavailable(f"{type(exc).__name__}: {exc}")
        if isinstance(answer, bool) or not isinstance(answer, int):
            return self._unavailable(f"non-integer answer {answer!r}")
        if answer <= 0:
            return self._unavailable(f"non-positive answer {answer}")
        return Ok(PriceObservation(
            value=answer, decimals=self._decimals, observed_at=self._clock.now(),
        ))

    def health_check(self) -> HealthStatus:
        """Healthy when the feed currently yields a usable price."""
        now = self._clock.now()
        match self.latest_price():
            case Ok(obs):
                return HealthStatus(
                    healthy=True, component=f"oracle:{self.feed_name}",
                    message=f"latest={obs.as_decimal()}", checked_at=now,
                )
            case Err(error):
                return HealthStatus(
                    healthy=False, component=f"oracle:{self.feed_name}",
                    message=error.message, checked_at=now,
                )
