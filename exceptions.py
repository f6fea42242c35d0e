#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Custom exceptions for the storefront fulfillment service."""

from typing import Optional


class FulfillmentError(Exception):
  """Base class for all expected (operational) errors."""

  def __init__(
      self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    super().__init__(self.message)


class AuthenticationError(FulfillmentError):
  """Raised when the request carries no resolvable identity."""

  def __init__(self, message: str = "Please login to continue"):
    super().__init__(message, code="UNAUTHENTICATED", status_code=401)


class UnverifiedError(FulfillmentError):
  """Raised when an unverified identity attempts to check out."""

  def __init__(
      self, message: str = "Please verify your email address to continue"
  ):
    super().__init__(message, code="UNVERIFIED", status_code=403)


class ForbiddenError(FulfillmentError):
  """Raised when an identity accesses a resource it does not own."""

  def __init__(self, message: str):
    super().__init__(message, code="FORBIDDEN", status_code=403)


class PaymentOwnershipError(FulfillmentError):
  """Raised when a payment intent was opened for a different identity."""

  def __init__(self, message: str):
    super().__init__(message, code="PAYMENT_OWNERSHIP", status_code=403)


class InvalidShippingError(FulfillmentError):
  """Raised when shipping information is missing a field or is invalid."""

  def __init__(self, field: str, message: Optional[str] = None):
    self.field = field
    super().__init__(
        message or f"Shipping information is missing required field: {field}",
        code="INVALID_SHIPPING",
        status_code=400,
    )


class EmptyCartError(FulfillmentError):
  """Raised when the identity's cart is absent or has no items."""

  def __init__(self, message: str = "Your cart is empty"):
    super().__init__(message, code="CART_EMPTY", status_code=400)


class PaymentNotCompleteError(FulfillmentError):
  """Raised when the referenced payment has not settled."""

  def __init__(self, message: str = "Payment has not been completed"):
    super().__init__(message, code="PAYMENT_NOT_COMPLETE", status_code=400)


class MissingShippingError(FulfillmentError):
  """Raised when no shipping data is supplied nor recoverable."""

  def __init__(self, message: str = "Shipping information is required"):
    super().__init__(message, code="MISSING_SHIPPING", status_code=400)


class SignatureInvalidError(FulfillmentError):
  """Raised when a webhook signature cannot be verified."""

  def __init__(self, message: str):
    super().__init__(message, code="SIGNATURE_INVALID", status_code=400)


class InvalidRequestError(FulfillmentError):
  """Raised when the request is invalid (e.g. missing fields)."""

  def __init__(self, message: str):
    super().__init__(message, code="INVALID_REQUEST", status_code=400)


class ResourceNotFoundError(FulfillmentError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str):
    super().__init__(message, code="RESOURCE_NOT_FOUND", status_code=404)


class OrderNotModifiableError(FulfillmentError):
  """Raised when an order in a terminal state would be transitioned."""

  def __init__(self, message: str):
    super().__init__(message, code="ORDER_NOT_MODIFIABLE", status_code=409)


class TransactionConflictError(FulfillmentError):
  """Raised when a concurrent writer won a race the store could not resolve."""

  def __init__(self, message: str):
    super().__init__(message, code="TRANSACTION_CONFLICT", status_code=409)


class PaymentProviderError(FulfillmentError):
  """Raised when the payment provider rejects or fails a call."""

  def __init__(
      self,
      message: str,
      code: str = "PAYMENT_PROVIDER_ERROR",
      status_code: int = 502,
  ):
    super().__init__(message, code=code, status_code=status_code)


class PaymentProviderTimeoutError(PaymentProviderError):
  """Raised when the payment provider does not answer in time.

  The caller may retry; no state was changed.
  """

  def __init__(self, message: str = "Payment provider timed out"):
    super().__init__(
        message, code="PAYMENT_PROVIDER_TIMEOUT", status_code=503
    )
