from .actions import (
    ActionKind,
    ActionResult,
    ActionStatus,
    PendingAction,
    Receipt,
)
from .funding import FundingRequest, FundingResponse, FundingStatusResponse
from .question import Answer, Question
from .user import User
