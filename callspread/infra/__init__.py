"""callspread.infra — protocols, in-memory adapters, configuration and health."""

from callspread.infra.config import DEFAULT_ENGINE_ADDRESS as DEFAULT_ENGINE_ADDRESS
from callspread.infra.config import DEFAULT_TASK_QUEUE as DEFAULT_TASK_QUEUE
from callspread.infra.config import EVENTS_TOPIC as EVENTS_TOPIC
from callspread.infra.config import KeeperConfig as KeeperConfig
from callspread.infra.config import SettlementConfig as SettlementConfig
from callspread.infra.config import TemporalConfig as TemporalConfig
from callspread.infra.health import HealthCheckable as HealthCheckable
from callspread.infra.health import HealthStatus as HealthStatus
from callspread.infra.health import SystemHealth as SystemHealth
from callspread.infra.health import collateral_health as collateral_health
from callspread.infra.health import readiness_check as readiness_check
from callspread.infra.memory_adapter import InMemoryCollateralToken as InMemoryCollateralToken
from callspread.infra.memory_adapter import InMemoryEventBus as InMemoryEventBus
from callspread.infra.memory_adapter import InMemoryPriceFeed as InMemoryPriceFeed
from callspread.infra.memory_adapter import ManualClock as ManualClock
from callspread.infra.protocols import Clock as Clock
from callspread.infra.protocols import CollateralToken as CollateralToken
from callspread.infra.protocols import EventBus as EventBus
from callspread.infra.protocols import PriceFeed as PriceFeed
from callspread.infra.protocols import SystemClock as SystemClock
