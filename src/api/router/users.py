"""
User profile API router - delegates to the users controller.
"""

from src.api.controller.users.users_controller import router

__all__ = ['router']
