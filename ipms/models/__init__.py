"""Database models."""

from ipms.models.account import Account
from ipms.models.alert import ManualAlert
from ipms.models.audit import AuditEntry
from ipms.models.policy import EvaluationWeightPolicy
from ipms.models.practice import EmployerEvaluation, FinalRecord, Practice, ReportEvaluation

__all__ = [
    "Account",
    "AuditEntry",
    "EmployerEvaluation",
    "EvaluationWeightPolicy",
    "FinalRecord",
    "ManualAlert",
    "Practice",
    "ReportEvaluation",
]
