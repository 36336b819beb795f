"""
Finance API router - delegates to the finance controller.
"""

from src.api.controller.finance.finance_controller import router

__all__ = ['router']
