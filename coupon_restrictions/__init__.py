from .logic import evaluate_policy, is_returning_customer
from .messages import MessageCatalog
from .models import AddressSnapshot, CartState, Coupon, ValidationOutcome
from .orchestrator import ValidationOrchestrator

__all__ = [
    "AddressSnapshot",
    "CartState",
    "Coupon",
    "MessageCatalog",
    "ValidationOrchestrator",
    "ValidationOutcome",
    "evaluate_policy",
    "is_returning_customer",
]
