"""
Payment processor webhook router - delegates to the Stripe webhook controller.
"""

from src.api.controller.webhooks.stripe_webhook_controller import router

__all__ = ['router']
