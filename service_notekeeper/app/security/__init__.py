"""
Security helpers for the Notekeeper service (password hashing).
"""

from .passwords import PasswordHasher

__all__ = ["PasswordHasher"]
