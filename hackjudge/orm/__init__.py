from .base import Base

# Directory
from .domain import Domain
from .team import Team
from .judge import Judge, JudgeType

# Allocation
from .allocation import DomainJudgeAssignment, RoundOneAllocation, RoundTwoAllocation

# Ledger + results
from .score import (
    Score, JudgingRound, CRITERIA_FIELDS, RUBRIC_FIELDS, QUANTIZER_2DP,
    compute_total, to_decimal
)
from .round_result import ResultCalculation, RoundResult, order_results
