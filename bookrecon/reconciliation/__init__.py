"""Book reconciliation: classification, allowed actions and resolution."""

from bookrecon.reconciliation.classifier import (
    CatalogEntry,
    allowed_actions,
    check_action,
    classify,
    parse_result,
)
from bookrecon.reconciliation.executor import ResolutionExecutor, target_key
from bookrecon.reconciliation.models import (
    BookStatus,
    FieldChange,
    PricingDifference,
    PricingStatus,
    ReconciliationResult,
    ResolutionAction,
    ResolutionRequest,
    ResolutionResponse,
)
from bookrecon.reconciliation.workflow import BookInsertionFlow, InsertStep, build_submission

__all__ = [
    "BookInsertionFlow",
    "BookStatus",
    "CatalogEntry",
    "FieldChange",
    "InsertStep",
    "PricingDifference",
    "PricingStatus",
    "ReconciliationResult",
    "ResolutionAction",
    "ResolutionExecutor",
    "ResolutionRequest",
    "ResolutionResponse",
    "allowed_actions",
    "build_submission",
    "check_action",
    "classify",
    "parse_result",
    "target_key",
]
