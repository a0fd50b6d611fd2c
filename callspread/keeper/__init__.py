"""callspread.keeper — bounded scanning and batch exercise of expired positions."""

from callspread.keeper.automation import ExerciseFailure as ExerciseFailure
from callspread.keeper.automation import KeeperAutomation as KeeperAutomation
from callspread.keeper.automation import ScanPage as ScanPage
from callspread.keeper.automation import UpkeepReport as UpkeepReport
from callspread.keeper.automation import decode_check_data as decode_check_data
from callspread.keeper.automation import decode_perform_data as decode_perform_data
from callspread.keeper.automation import encode_check_data as encode_check_data
from callspread.keeper.automation import encode_perform_data as encode_perform_data
