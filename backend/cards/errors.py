"""Domain errors raised by the card engines.

Routes never build HTTP errors for domain rules themselves; services raise one
of these and the handler registered in ``cards.main`` renders it.
"""
from __future__ import annotations


class CardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequired(CardError):
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationDenied(CardError):
    status_code = 403


class ValidationError(CardError):
    status_code = 400


class NotFound(CardError):
    status_code = 404


class Conflict(CardError):
    status_code = 409
