"""Typed domain models."""

from degiro_proxy.models.account import ClientProfile
from degiro_proxy.models.auth import LoginRejected, LoginRequiresTOTP, LoginResult, LoginStatus, LoginSuccess, Session
from degiro_proxy.models.portfolio import (
    DateRange,
    DividendsResult,
    HealthCheck,
    HealthReport,
    Holding,
    IncomeEvent,
    PortfolioSnapshot,
    PortfolioSync,
)

__all__ = [
    "ClientProfile",
    "DateRange",
    "DividendsResult",
    "HealthCheck",
    "HealthReport",
    "Holding",
    "IncomeEvent",
    "LoginRejected",
    "LoginRequiresTOTP",
    "LoginResult",
    "LoginStatus",
    "LoginSuccess",
    "PortfolioSnapshot",
    "PortfolioSync",
    "Session",
]
