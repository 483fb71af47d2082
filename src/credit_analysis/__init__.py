"""Channel credit reporting over rule-based attribution."""

from .report import ChannelCreditRow, CreditReport, KPIBundle

__all__ = ["ChannelCreditRow", "CreditReport", "KPIBundle"]
