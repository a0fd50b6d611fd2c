"""callspread.oracle — validated reads from an external price feed."""

from callspread.oracle.price_feed import PriceObservation as PriceObservation
from callspread.oracle.price_feed import PriceOracleAdapter as PriceOracleAdapter
