"""callspread.core — public API for all core types."""

from callspread.core.errors import (
    AlreadyExercisedError as AlreadyExercisedError,
)
from callspread.core.errors import (
    CallSpreadError as CallSpreadError,
)
from callspread.core.errors import (
    ConservationViolationError as ConservationViolationError,
)
from callspread.core.errors import (
    FieldViolation as FieldViolation,
)
from callspread.core.errors import (
    IllegalTransitionError as IllegalTransitionError,
)
from callspread.core.errors import (
    InsufficientAllowanceError as InsufficientAllowanceError,
)
from callspread.core.errors import (
    InsufficientBalanceError as InsufficientBalanceError,
)
from callspread.core.errors import (
    InsufficientEscrowError as InsufficientEscrowError,
)
from callspread.core.errors import (
    InvalidExpiryError as InvalidExpiryError,
)
from callspread.core.errors import (
    InvalidStrikesError as InvalidStrikesError,
)
from callspread.core.errors import (
    NotExpiredError as NotExpiredError,
)
from callspread.core.errors import (
    OracleUnavailableError as OracleUnavailableError,
)
from callspread.core.errors import (
    PersistenceError as PersistenceError,
)
from callspread.core.errors import (
    UnauthorizedError as UnauthorizedError,
)
from callspread.core.errors import (
    UnknownPositionError as UnknownPositionError,
)
from callspread.core.errors import (
    ValidationError as ValidationError,
)
from callspread.core.money import (
    SETTLEMENT_DECIMAL_CONTEXT as SETTLEMENT_DECIMAL_CONTEXT,
)
from callspread.core.money import (
    PositiveDecimal as PositiveDecimal,
)
from callspread.core.result import (
    Err as Err,
)
from callspread.core.result import (
    Ok as Ok,
)
from callspread.core.result import (
    Result as Result,
)
from callspread.core.result import (
    map_result as map_result,
)
from callspread.core.result import (
    unwrap as unwrap,
)
from callspread.core.serialization import (
    canonical_bytes as canonical_bytes,
)
from callspread.core.serialization import (
    content_hash as content_hash,
)
from callspread.core.types import (
    Address as Address,
)
from callspread.core.types import (
    LoggedEnvelope as LoggedEnvelope,
)
from callspread.core.types import (
    UtcDatetime as UtcDatetime,
)
