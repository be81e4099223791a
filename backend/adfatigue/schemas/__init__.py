from adfatigue.schemas.account import AccountResponse, AccountList
from adfatigue.schemas.fatigue import (
    AlertResponse,
    BatchAnalyzeRequest,
    CreativeSampleIn,
    FatigueRecordResponse,
    FatigueScoreSchema,
)

__all__ = [
    "AccountResponse",
    "AccountList",
    "AlertResponse",
    "BatchAnalyzeRequest",
    "CreativeSampleIn",
    "FatigueRecordResponse",
    "FatigueScoreSchema",
]
