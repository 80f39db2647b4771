"""Module access gate: sequential unlocking on quiz results and completion."""

from .policy import AccessDecision, AccessReason, evaluate_access


__all__ = ["AccessDecision", "AccessReason", "evaluate_access"]
