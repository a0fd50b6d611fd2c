"""Settlement engine — create, purchase, transfer and exercise call spreads.

Per-position state machine:

    OPEN --buy--> PURCHASED --exercise--> EXERCISED
    OPEN --------------------exercise--> EXERCISED

Creation escrows against a reserved id before the position is stored, so a
token callback during the pull cannot see a half-created position.

Exercise follows checks, then effects, then interactions: the position is
marked exercised before any collateral leaves the vault, so a reentrant
exercise from a token callback is refused with AlreadyExercisedError. If the
owner payout fails the position is put back as it was. Once the owner has
been paid the position stays exercised; a refund the seller cannot receive
stays escrowed under the position until claim_refund delivers it.

SettlementEngine is @final but NOT a dataclass — it holds mutable state.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal, localcontext
from typing import final

from callspread.core.errors import (
    AlreadyExercisedError,
    CallSpreadError,
    ConservationViolationError,
    FieldViolation,
    IllegalTransitionError,
    InsufficientEscrowError,
    NotExpiredError,
    UnknownPositionError,
    ValidationError,
)
from callspread.core.money import SETTLEMENT_DECIMAL_CONTEXT, PositiveDecimal, is_representable
from callspread.core.result import Err, Ok
from callspread.core.types import Address, UtcDatetime
from callspread.infra.config import SettlementConfig
from callspread.infra.health import HealthStatus, collateral_health
from callspread.infra.protocols import Clock, CollateralToken, SystemClock
from callspread.ledger.events import (
    CallSpreadCreated,
    CallSpreadEvent,
    CallSpreadExercised,
    CallSpreadPurchased,
    CallSpreadTransferred,
    EventLog,
)
from callspread.ledger.payoff import call_spread_payoff, max_payoff, to_collateral_units
from callspread.ledger.positions import Position, PositionLedger, validate_terms
from callspread.ledger.vault import CollateralVault
from callspread.oracle.price_feed import PriceOracleAdapter

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class ExerciseReceipt:
    """Outcome of a successful exercise. payoff_amount + seller_refund == collateral.

    refund_pending means the seller_refund transfer failed and the amount is
    still escrowed under the position, awaiting claim_refund.
    """

    position_id: int
    owner: Address
    seller: Address
    price_used: int
    raw_payoff: int
    payoff_amount: Decimal
    seller_refund: Decimal
    exercised_at: UtcDatetime
    refund_pending: bool = False


def _validation_err(
    message: str, code: str, now: UtcDatetime, source: str, violation: FieldViolation,
) -> Err[ValidationError]:
    return Err(ValidationError(
        message=message, code=code, timestamp=now, source=source, fields=(violation,),
    ))


@final
class SettlementEngine:
    """Sole mutator of the position ledger and the collateral vault."""

    def __init__(
        self,
        token: CollateralToken,
        oracle: PriceOracleAdapter,
        *,
        clock: Clock | None = None,
        config: SettlementConfig | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        self._config = config if config is not None else SettlementConfig()
        if token.decimals != self._config.collateral_decimals:
            raise TypeError(
                f"Collateral token has {token.decimals} decimals, "
                f"config expects {self._config.collateral_decimals}"
            )
        self._address = Address(value=self._config.engine_address)
        self._clock = clock if clock is not None else SystemClock()
        self._oracle = oracle
        self._ledger = PositionLedger()
        self._ledger.approve_operator(self._address)
        self._vault = CollateralVault(token, self._address)
        self._events = event_log if event_log is not None else EventLog()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def address(self) -> Address:
        """Spender address sellers must approve before creating positions."""
        return self._address

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def oracle(self) -> PriceOracleAdapter:
        return self._oracle

    @property
    def config(self) -> SettlementConfig:
        return self._config

    def now(self) -> UtcDatetime:
        return self._clock.now()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_call_spread(
        self,
        caller: Address,
        strike_low: int,
        strike_high: int,
        expiry: UtcDatetime,
        collateral: Decimal,
        metadata_uri: str = "",
    ) -> Ok[int] | Err[CallSpreadError]:
        """Escrow `collateral` from `caller` and mint a position they own."""
        now = self._clock.now()
        source = "ledger.engine.SettlementEngine.create_call_spread"

        match validate_terms(strike_low, strike_high, expiry, now, source):
            case Err() as e:
                logger.debug("create rejected for %s: %s", caller, e.error.message)
                return e
            case Ok():
                pass

        match PositiveDecimal.parse(collateral):
            case Err(reason):
                return _validation_err(
                    f"collateral: {reason}", "INVALID_COLLATERAL", now, source,
                    FieldViolation("collateral", "must be positive", str(collateral)),
                )
            case Ok():
                pass
        decimals = self._config.collateral_decimals
        if not is_representable(collateral, decimals):
            return _validation_err(
                f"collateral {collateral} has more than {decimals} decimal places",
                "INVALID_COLLATERAL", now, source,
                FieldViolation("collateral", f"at most {decimals} places", str(collateral)),
            )
        required = self._to_collateral(max_payoff(strike_low, strike_high))
        if collateral < required:
            return _validation_err(
                f"collateral {collateral} does not cover maximum payoff {required}",
                "UNDER_COLLATERALIZED", now, source,
                FieldViolation("collateral", f">= {required}", str(collateral)),
            )

        position_id = self._ledger.reserve_id()
        match self._vault.escrow(position_id, caller, collateral):
            case Err() as e:
                logger.debug(
                    "escrow failed for reserved id %d (%s): %s",
                    position_id, caller, e.error.message,
                )
                return e
            case Ok():
                pass

        match self._ledger.create(
            strike_low, strike_high, expiry, collateral, metadata_uri, caller, now,
            reserved_id=position_id,
        ):
            case Err() as e:
                match self._vault.release(position_id, caller, collateral, now):
                    case Err(error):
                        logger.error(
                            "could not return escrow of reserved id %d to %s: %s",
                            position_id, caller, error.message,
                        )
                    case Ok():
                        pass
                return e
            case Ok(position):
                pass

        self._emit(CallSpreadCreated(
            position_id=position.position_id,
            seller=caller,
            strike_low=strike_low,
            strike_high=strike_high,
            expiry=expiry,
        ), now)
        logger.info(
            "created position %d seller=%s strikes=[%d, %d] collateral=%s",
            position.position_id, caller, strike_low, strike_high, collateral,
        )
        return Ok(position.position_id)

    def buy_call_spread(
        self, caller: Address, position_id: int,
    ) -> Ok[None] | Err[CallSpreadError]:
        """Transfer ownership to `caller`. No premium is collected here."""
        now = self._clock.now()
        source = "ledger.engine.SettlementEngine.buy_call_spread"
        match self._ledger.get(position_id, now):
            case Err() as e:
                return e
            case Ok(position):
                pass
        if position.exercised:
            return self._already_exercised(position_id, now, source)
        if position.purchased:
            return Err(IllegalTransitionError(
                message=f"Position {position_id} was already purchased by {position.buyer}",
                code="ALREADY_PURCHASED",
                timestamp=now,
                source=source,
                from_state="PURCHASED",
                to_state="PURCHASED",
            ))
        if position.owner == caller:
            return Err(IllegalTransitionError(
                message=f"{caller} already owns position {position_id}",
                code="ALREADY_OWNER",
                timestamp=now,
                source=source,
                from_state="OPEN",
                to_state="PURCHASED",
            ))

        match self._ledger.transfer_ownership(position_id, caller, self._address, now):
            case Err() as e:
                return e
            case Ok():
                pass
        self._ledger.record_buyer(position_id, caller, now)

        self._emit(CallSpreadPurchased(position_id=position_id, buyer=caller), now)
        logger.info("position %d purchased by %s", position_id, caller)
        return Ok(None)

    def transfer_call_spread(
        self, caller: Address, position_id: int, recipient: Address,
    ) -> Ok[None] | Err[CallSpreadError]:
        """Move an unexercised position from its current owner to `recipient`."""
        now = self._clock.now()
        source = "ledger.engine.SettlementEngine.transfer_call_spread"
        match self._ledger.get(position_id, now):
            case Err() as e:
                return e
            case Ok(position):
                pass
        if position.exercised:
            return self._already_exercised(position_id, now, source)
        if recipient == position.owner:
            return Err(IllegalTransitionError(
                message=f"{recipient} already owns position {position_id}",
                code="ALREADY_OWNER",
                timestamp=now,
                source=source,
                from_state="OWNED",
                to_state="OWNED",
            ))
        match self._ledger.transfer_ownership(position_id, recipient, caller, now):
            case Err() as e:
                return e
            case Ok():
                pass
        self._emit(CallSpreadTransferred(
            position_id=position_id, previous_owner=position.owner, new_owner=recipient,
        ), now)
        logger.info(
            "position %d transferred %s -> %s", position_id, position.owner, recipient,
        )
        return Ok(None)

    def exercise_call_spread(
        self, position_id: int,
    ) -> Ok[ExerciseReceipt] | Err[CallSpreadError]:
        """Settle an expired position against the oracle's latest price.

        Anyone may call; the payoff always goes to the current owner and the
        rest of the collateral to the seller.
        """
        now = self._clock.now()
        source = "ledger.engine.SettlementEngine.exercise_call_spread"

        # 1. Checks
        match self._ledger.get(position_id, now):
            case Err() as e:
                return e
            case Ok(position):
                pass
        if not position.is_expired(now):
            return Err(NotExpiredError(
                message=f"Position {position_id} has not expired yet",
                code="NOT_EXPIRED",
                timestamp=now,
                source=source,
                position_id=position_id,
                expiry=position.expiry.value.isoformat(),
                now=now.value.isoformat(),
            ))
        if position.exercised:
            return self._already_exercised(position_id, now, source)

        match self._oracle.latest_price():
            case Err() as e:
                logger.warning(
                    "exercise of position %d blocked: %s", position_id, e.error.message,
                )
                return e
            case Ok(observation):
                pass

        raw = call_spread_payoff(position.strike_low, position.strike_high, observation.value)
        payoff_amount = self._to_collateral(raw)
        if payoff_amount > position.collateral:
            return Err(ConservationViolationError(
                message=f"Payoff {payoff_amount} exceeds collateral {position.collateral}",
                code="CONSERVATION_VIOLATION",
                timestamp=now,
                source=source,
                law_name="payoff <= collateral",
                expected=str(position.collateral),
                actual=str(payoff_amount),
            ))
        with localcontext(SETTLEMENT_DECIMAL_CONTEXT):
            refund = position.collateral - payoff_amount
        if not self._vault.can_release(position_id, position.collateral):
            return Err(InsufficientEscrowError(
                message=f"Vault holds {self._vault.escrowed(position_id)} for position {position_id}",
                code="INSUFFICIENT_ESCROW",
                timestamp=now,
                source=source,
                position_id=position_id,
                required=str(position.collateral),
                available=str(self._vault.escrowed(position_id)),
            ))

        # 2. Effects
        match self._ledger.mark_exercised(position_id, now):
            case Err() as e:
                return e
            case Ok():
                pass

        # 3. Interactions
        match self._vault.release(position_id, position.owner, payoff_amount, now):
            case Err() as e:
                self._ledger.reinstate(position)
                logger.error(
                    "payout of position %d to owner %s failed, rolled back: %s",
                    position_id, position.owner, e.error.message,
                )
                return e
            case Ok():
                pass
        # The owner has been paid: the position stays exercised from here on.
        refund_pending = False
        match self._vault.release(position_id, position.seller, refund, now):
            case Err(error):
                refund_pending = True
                logger.error(
                    "refund of %s to seller %s for position %d failed, left claimable: %s",
                    refund, position.seller, position_id, error.message,
                )
            case Ok():
                pass

        self._emit(CallSpreadExercised(
            position_id=position_id, payoff_amount=payoff_amount, price_used=observation.value,
        ), now)
        logger.info(
            "exercised position %d at price %d: owner %s gets %s, seller %s gets %s",
            position_id, observation.value, position.owner, payoff_amount,
            position.seller, refund,
        )
        return Ok(ExerciseReceipt(
            position_id=position_id,
            owner=position.owner,
            seller=position.seller,
            price_used=observation.value,
            raw_payoff=raw,
            payoff_amount=payoff_amount,
            seller_refund=refund,
            exercised_at=now,
            refund_pending=refund_pending,
        ))

    def claim_refund(self, position_id: int) -> Ok[Decimal] | Err[CallSpreadError]:
        """Pay the seller a refund that could not be delivered at exercise.

        Anyone may call; the funds only ever go to the position's seller.
        """
        now = self._clock.now()
        source = "ledger.engine.SettlementEngine.claim_refund"
        match self._ledger.get(position_id, now):
            case Err() as e:
                return e
            case Ok(position):
                pass
        pending = self._vault.escrowed(position_id)
        if not position.exercised or pending == 0:
            return Err(IllegalTransitionError(
                message=f"Position {position_id} has no refund awaiting its seller",
                code="NO_REFUND_PENDING",
                timestamp=now,
                source=source,
                from_state="EXERCISED" if position.exercised else "OPEN",
                to_state="REFUNDED",
            ))
        match self._vault.release(position_id, position.seller, pending, now):
            case Err() as e:
                logger.warning(
                    "refund claim for position %d still blocked: %s",
                    position_id, e.error.message,
                )
                return e
            case Ok():
                pass
        logger.info(
            "refunded %s to seller %s for position %d", pending, position.seller, position_id,
        )
        return Ok(pending)

    def calculate_payoff(
        self, position_id: int, price: int,
    ) -> Ok[int] | Err[UnknownPositionError]:
        """Quote the raw payoff of a position at an arbitrary price."""
        return self._ledger.get(position_id).map(
            lambda p: call_spread_payoff(p.strike_low, p.strike_high, price),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def owner_of(self, position_id: int) -> Ok[Address] | Err[UnknownPositionError]:
        return self._ledger.owner_of(position_id)

    def call_spread(self, position_id: int) -> Ok[Position] | Err[UnknownPositionError]:
        return self._ledger.get(position_id)

    def position_ids(self, start: int = 0) -> Iterator[int]:
        return self._ledger.ids(start)

    def position_count(self) -> int:
        return self._ledger.count()

    def escrowed(self, position_id: int) -> Decimal:
        return self._vault.escrowed(position_id)

    def health_check(self) -> HealthStatus:
        """Healthy while the engine's token balance covers every escrow record."""
        return collateral_health(
            self._vault.token, self._address, self._vault.total_escrowed(), self._clock.now(),
        )

    def is_exercisable(self, position_id: int) -> bool:
        """Expired and not yet exercised, as of now."""
        match self._ledger.get(position_id):
            case Ok(position):
                return not position.exercised and position.is_expired(self._clock.now())
            case Err():
                return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _to_collateral(self, raw_payoff: int) -> Decimal:
        return to_collateral_units(
            raw_payoff,
            self._oracle.decimals,
            self._config.quote_per_collateral_unit,
            self._config.collateral_decimals,
        )

    @staticmethod
    def _already_exercised(
        position_id: int, now: UtcDatetime, source: str,
    ) -> Err[AlreadyExercisedError]:
        return Err(AlreadyExercisedError(
            message=f"Position {position_id} already exercised",
            code="ALREADY_EXERCISED",
            timestamp=now,
            source=source,
            position_id=position_id,
        ))

    def _emit(self, event: CallSpreadEvent, now: UtcDatetime) -> None:
        match self._events.append(event, now):
            case Err(error):
                logger.warning(
                    "event %s for position %d not published: %s",
                    type(event).__name__, event.position_id, error.message,
                )
            case Ok():
                pass
