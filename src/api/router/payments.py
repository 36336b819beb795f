"""
Deposit API router - delegates to the payments controller.
"""

from src.api.controller.payments.payments_controller import router

__all__ = ['router']
