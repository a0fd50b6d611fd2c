"""Keeper automation — find expired positions and exercise them in batches.

Work per call is bounded twice: a scan inspects at most
KeeperConfig.max_inspections positions, and a batch exercises at most
KeeperConfig.max_batch_size of them. Scans resume from a cursor (the next
id to inspect), so the whole id space is covered across calls without any
single call walking all of it.

check_upkeep / perform_upkeep form the pull interface an external scheduler
drives. perform_upkeep treats its payload as untrusted: payloads over
MAX_PAYLOAD_BYTES are refused before parsing, and every id is re-validated
by the engine, which refuses anything not exercisable.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import final

from callspread.core.errors import CallSpreadError, FieldViolation, ValidationError
from callspread.core.result import Err, Ok
from callspread.core.serialization import canonical_bytes
from callspread.core.types import UtcDatetime
from callspread.infra.config import KeeperConfig
from callspread.infra.health import SystemHealth, readiness_check
from callspread.ledger.engine import SettlementEngine

logger = logging.getLogger(__name__)

# Upper bound on any check or perform payload accepted for parsing.
MAX_PAYLOAD_BYTES = 64 * 1024


@final
@dataclass(frozen=True, slots=True)
class ScanPage:
    """Eligible ids found by one bounded scan.

    next_cursor is None once the known id space is exhausted.
    """

    ids: tuple[int, ...]
    next_cursor: int | None
    inspected: int


@final
@dataclass(frozen=True, slots=True)
class ExerciseFailure:
    position_id: int
    code: str
    message: str


@final
@dataclass(frozen=True, slots=True)
class UpkeepReport:
    """Per-id outcome of one batch."""

    succeeded: tuple[int, ...] = ()
    failed: tuple[ExerciseFailure, ...] = ()
    next_cursor: int | None = None

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)


# ---------------------------------------------------------------------------
# Payload codec
# ---------------------------------------------------------------------------


def encode_perform_data(ids: Iterable[int]) -> bytes:
    """Canonical JSON payload: {"ids": [...]}."""
    match canonical_bytes({"ids": list(ids)}):
        case Ok(payload):
            return payload
        case Err(reason):
            raise TypeError(reason)


def _malformed(
    source: str, constraint: str, actual: str,
) -> Err[ValidationError]:
    return Err(ValidationError(
        message=f"Malformed upkeep payload: {constraint}",
        code="MALFORMED_PAYLOAD",
        timestamp=UtcDatetime.now(),
        source=source,
        fields=(FieldViolation("perform_data", constraint, actual[:200]),),
    ))


def decode_perform_data(data: bytes) -> Ok[tuple[int, ...]] | Err[ValidationError]:
    """Parse an untrusted payload into a tuple of non-negative ids."""
    source = "keeper.automation.decode_perform_data"
    if len(data) > MAX_PAYLOAD_BYTES:
        return _malformed(
            source, f"larger than {MAX_PAYLOAD_BYTES} bytes", f"{len(data)} bytes",
        )
    try:
        decoded = json.loads(data)
    except (ValueError, RecursionError) as exc:
        return _malformed(source, f"not valid JSON ({type(exc).__name__})", repr(data[:200]))
    if not isinstance(decoded, dict) or not isinstance(decoded.get("ids"), list):
        return _malformed(source, 'expected object with "ids" list', repr(decoded))
    ids = decoded["ids"]
    for pid in ids:
        if isinstance(pid, bool) or not isinstance(pid, int) or pid < 0:
            return _malformed(source, "ids must be non-negative integers", repr(pid))
    return Ok(tuple(ids))


def decode_check_data(data: bytes) -> int:
    """Cursor carried by check data: {"cursor": n}. Empty or unreadable -> 0."""
    if not data or len(data) > MAX_PAYLOAD_BYTES:
        return 0
    try:
        decoded = json.loads(data)
    except (ValueError, RecursionError):
        logger.debug("ignoring unreadable check data %r", data[:64])
        return 0
    cursor = decoded.get("cursor") if isinstance(decoded, dict) else None
    if isinstance(cursor, bool) or not isinstance(cursor, int) or cursor < 0:
        return 0
    return cursor


def encode_check_data(cursor: int) -> bytes:
    match canonical_bytes({"cursor": cursor}):
        case Ok(payload):
            return payload
        case Err(reason):
            raise TypeError(reason)


# ---------------------------------------------------------------------------
# Automation
# ---------------------------------------------------------------------------


@final
class KeeperAutomation:
    """Bounded scanner and batch executor over a SettlementEngine.

    Reads positions only through the engine's public queries and settles
    them only through exercise_call_spread.
    """

    def __init__(
        self, engine: SettlementEngine, config: KeeperConfig | None = None,
    ) -> None:
        self._engine = engine
        self._config = config if config is not None else KeeperConfig()

    @property
    def config(self) -> KeeperConfig:
        return self._config

    def readiness(self) -> SystemHealth:
        """Oracle and collateral health of the engine this keeper drives."""
        return readiness_check((self._engine.oracle, self._engine))

    def _is_eligible(self, position_id: int, now: UtcDatetime) -> bool:
        match self._engine.call_spread(position_id):
            case Ok(position):
                return not position.exercised and position.expiry <= now
            case Err():
                return False

    def iter_eligible(self, cursor: int = 0) -> Iterator[int]:
        """Lazily yield unexercised, expired ids >= cursor.

        Finite: covers ids allocated before iteration started.
        """
        now = self._engine.now()
        for pid in self._engine.position_ids(max(cursor, 0)):
            if self._is_eligible(pid, now):
                yield pid

    def scan(self, max_candidates: int, cursor: int = 0) -> ScanPage:
        """One bounded page of eligible ids, starting at `cursor`."""
        budget = self._config.max_inspections
        now = self._engine.now()
        found: list[int] = []
        inspected = 0
        next_cursor: int | None = None
        for pid in self._engine.position_ids(max(cursor, 0)):
            if inspected >= budget or len(found) >= max_candidates:
                next_cursor = pid
                break
            inspected += 1
            if self._is_eligible(pid, now):
                found.append(pid)
        return ScanPage(ids=tuple(found), next_cursor=next_cursor, inspected=inspected)

    def run(
        self, batch_size: int, cursor: int = 0,
    ) -> Ok[UpkeepReport] | Err[ValidationError]:
        """Scan from `cursor` and exercise up to `batch_size` positions."""
        if batch_size < 1:
            return Err(ValidationError(
                message=f"batch_size must be >= 1, got {batch_size}",
                code="INVALID_BATCH_SIZE",
                timestamp=self._engine.now(),
                source="keeper.automation.KeeperAutomation.run",
                fields=(FieldViolation("batch_size", ">= 1", str(batch_size)),),
            ))
        size = min(batch_size, self._config.max_batch_size)
        page = self.scan(size, cursor)
        return Ok(self._exercise_all(page.ids, page.next_cursor))

    def check_upkeep(self, check_data: bytes = b"") -> tuple[bool, bytes]:
        """Read-only: is there work, and which ids should perform_upkeep take."""
        page = self.scan(self._config.max_batch_size, decode_check_data(check_data))
        return bool(page.ids), encode_perform_data(page.ids)

    def perform_upkeep(self, perform_data: bytes) -> Ok[UpkeepReport] | Err[ValidationError]:
        """Exercise the ids in a check_upkeep payload. Safe to repeat."""
        match decode_perform_data(perform_data):
            case Err() as e:
                logger.warning("rejected upkeep payload: %s", e.error.message)
                return e
            case Ok(ids):
                pass
        unique = tuple(dict.fromkeys(ids))[: self._config.max_batch_size]
        return Ok(self._exercise_all(unique, None))

    def _exercise_all(
        self, ids: tuple[int, ...], next_cursor: int | None,
    ) -> UpkeepReport:
        succeeded: list[int] = []
        failed: list[ExerciseFailure] = []
        for pid in ids:
            match self._engine.exercise_call_spread(pid):
                case Ok(_):
                    succeeded.append(pid)
                case Err(error):
                    failed.append(_failure(pid, error))
                    logger.warning(
                        "keeper could not exercise position %d: [%s] %s",
                        pid, error.code, error.message,
                    )
        if ids:
            logger.info(
                "upkeep batch done: %d exercised, %d failed",
                len(succeeded), len(failed),
            )
        return UpkeepReport(
            succeeded=tuple(succeeded), failed=tuple(failed), next_cursor=next_cursor,
        )


def _failure(position_id: int, error: CallSpreadError) -> ExerciseFailure:
    return ExerciseFailure(position_id=position_id, code=error.code, message=error.message)
