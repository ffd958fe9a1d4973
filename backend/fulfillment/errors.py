# Overview: Domain error taxonomy shared by services and routes.

from __future__ import annotations


class FulfillmentError(Exception):
    """
    Base class for caller-visible domain errors.

    status_code is the HTTP status routes answer with; details carries the
    structured context (offending product, quantities) for the response body.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(FulfillmentError):
    """400-level input problem."""


class EmptyCart(ValidationError):
    """Checkout attempted on a cart with no lines."""


class InvalidPaymentMethod(ValidationError):
    """Payment method outside the accepted set."""


class AuthorizationError(FulfillmentError):
    """Actor is not allowed to touch the resource."""
    status_code = 403


class Unauthorized(AuthorizationError):
    """Cart or order does not belong to the acting user."""


class NotFoundError(FulfillmentError):
    status_code = 404


class ProductNotFound(NotFoundError):
    pass


class InsufficientStock(FulfillmentError):
    """Requested quantity exceeds what the product can supply."""
    status_code = 409


class InsufficientSerials(FulfillmentError):
    """Fewer unconsumed serials exist than the allocation needs."""
    status_code = 409
