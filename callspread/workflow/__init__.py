"""callspread.workflow — Temporal keeper upkeep workflow."""

from callspread.workflow.types import KeeperRunResult as KeeperRunResult
from callspread.workflow.types import KeeperWorkflowInput as KeeperWorkflowInput
from callspread.workflow.types import UpkeepCheckInput as UpkeepCheckInput
from callspread.workflow.types import UpkeepCheckOutput as UpkeepCheckOutput
from callspread.workflow.types import UpkeepFailure as UpkeepFailure
from callspread.workflow.types import UpkeepPerformInput as UpkeepPerformInput
from callspread.workflow.types import UpkeepPerformOutput as UpkeepPerformOutput
