"""callspread.ledger — positions, collateral custody, payoff and settlement."""

from callspread.ledger.engine import ExerciseReceipt as ExerciseReceipt
from callspread.ledger.engine import SettlementEngine as SettlementEngine
from callspread.ledger.events import CallSpreadCreated as CallSpreadCreated
from callspread.ledger.events import CallSpreadEvent as CallSpreadEvent
from callspread.ledger.events import CallSpreadExercised as CallSpreadExercised
from callspread.ledger.events import CallSpreadPurchased as CallSpreadPurchased
from callspread.ledger.events import CallSpreadTransferred as CallSpreadTransferred
from callspread.ledger.events import EventLog as EventLog
from callspread.ledger.payoff import call_spread_payoff as call_spread_payoff
from callspread.ledger.payoff import max_payoff as max_payoff
from callspread.ledger.payoff import to_collateral_units as to_collateral_units
from callspread.ledger.positions import Position as Position
from callspread.ledger.positions import PositionLedger as PositionLedger
from callspread.ledger.positions import validate_terms as validate_terms
from callspread.ledger.vault import CollateralVault as CollateralVault
