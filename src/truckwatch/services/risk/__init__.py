"""Delivery risk analysis exports."""

from .analyzer import RiskAnalysis, RiskStatus, Severity, analyze, get_filter_categories

__all__ = ["RiskAnalysis", "RiskStatus", "Severity", "analyze", "get_filter_categories"]
