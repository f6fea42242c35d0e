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

"""Payment provider access.

The provider is the system of record for whether money moved. The service
needs three things from it: open a payment intent, read an intent's current
state, and verify that a webhook delivery really came from the provider.
`PaymentGateway` names those operations; `StripePaymentGateway` implements
them on top of the Stripe SDK.

Stripe's SDK is blocking, so calls run in a worker thread and are bounded by
a timeout. A timeout surfaces as `PaymentProviderTimeoutError` so callers can
abort whatever transaction they hold open.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from exceptions import InvalidRequestError
from exceptions import PaymentProviderError
from exceptions import PaymentProviderTimeoutError
from exceptions import SignatureInvalidError
from models import PaymentIntentRecord
import stripe

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class PaymentGateway:
  """Interface to the external payment provider."""

  async def create_intent(
      self,
      amount: int,
      currency: str,
      metadata: Dict[str, str],
      receipt_email: Optional[str] = None,
  ) -> PaymentIntentRecord:
    """Opens a payment intent for `amount` minor currency units."""
    raise NotImplementedError

  async def retrieve_intent(self, payment_intent_id: str) -> PaymentIntentRecord:
    """Fetches the current state of a payment intent."""
    raise NotImplementedError

  def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
    """Verifies a webhook delivery and returns the decoded event.

    Args:
      payload: The raw, unparsed request body.
      signature: The provider's signature header.

    Returns:
      The event as a plain dict.

    Raises:
      SignatureInvalidError: If the signature does not match the payload.
    """
    raise NotImplementedError


def _stripe_to_dict(obj: Any) -> Dict[str, Any]:
  """Converts a Stripe SDK object to a plain dict.

  Newer SDK releases no longer subclass dict; `to_dict` recurses into nested
  objects such as `metadata`.
  """
  if obj is None:
    return {}
  if isinstance(obj, dict):
    return obj
  return obj.to_dict()


def _to_record(intent: Any) -> PaymentIntentRecord:
  intent = _stripe_to_dict(intent)
  metadata = _stripe_to_dict(intent.get("metadata"))
  return PaymentIntentRecord(
      id=intent["id"],
      amount=intent["amount"],
      currency=intent["currency"],
      status=intent["status"],
      client_secret=intent.get("client_secret"),
      metadata={str(k): str(v) for k, v in dict(metadata).items()},
  )


class StripePaymentGateway(PaymentGateway):
  """PaymentGateway backed by the Stripe API."""

  def __init__(
      self,
      api_key: Optional[str],
      webhook_secret: Optional[str],
      timeout: float = DEFAULT_TIMEOUT_SECONDS,
  ):
    self.api_key = api_key
    self.webhook_secret = webhook_secret
    self.timeout = timeout

  async def _call(self, description: str, func, *args, **kwargs) -> Any:
    if not self.api_key:
      raise PaymentProviderError("Payment provider is not configured")
    try:
      return await asyncio.wait_for(
          asyncio.to_thread(func, *args, api_key=self.api_key, **kwargs),
          timeout=self.timeout,
      )
    except asyncio.TimeoutError as e:
      logger.error("Timed out after %.1fs: %s", self.timeout, description)
      raise PaymentProviderTimeoutError() from e
    except stripe.InvalidRequestError as e:
      logger.warning("Stripe rejected %s: %s", description, e)
      raise InvalidRequestError(f"Payment provider rejected request: {e}") from e
    except stripe.StripeError as e:
      logger.error("Stripe error during %s: %s", description, e)
      raise PaymentProviderError(f"Payment provider error: {e}") from e

  async def create_intent(
      self,
      amount: int,
      currency: str,
      metadata: Dict[str, str],
      receipt_email: Optional[str] = None,
  ) -> PaymentIntentRecord:
    params: Dict[str, Any] = {
        "amount": amount,
        "currency": currency,
        "metadata": metadata,
        # The storefront confirms card payments in-page; redirect-based
        # methods would leave the reconciliation to the webhook alone.
        "automatic_payment_methods": {
            "enabled": True,
            "allow_redirects": "never",
        },
    }
    if receipt_email:
      params["receipt_email"] = receipt_email
    intent = await self._call(
        "create payment intent", stripe.PaymentIntent.create, **params
    )
    return _to_record(intent)

  async def retrieve_intent(self, payment_intent_id: str) -> PaymentIntentRecord:
    intent = await self._call(
        f"retrieve payment intent {payment_intent_id}",
        stripe.PaymentIntent.retrieve,
        payment_intent_id,
    )
    return _to_record(intent)

  def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
    if not self.webhook_secret:
      raise PaymentProviderError("Webhook secret is not configured")
    if not signature:
      raise SignatureInvalidError("Missing Stripe signature header")
    try:
      stripe.WebhookSignature.verify_header(
          payload.decode("utf-8"), signature, self.webhook_secret
      )
      event = json.loads(payload)
    except stripe.SignatureVerificationError as e:
      raise SignatureInvalidError(f"Webhook Error: {e}") from e
    except ValueError as e:
      # Covers UnicodeDecodeError and JSONDecodeError.
      raise SignatureInvalidError(f"Webhook Error: {e}") from e
    if not isinstance(event, dict) or "type" not in event:
      raise SignatureInvalidError("Webhook Error: malformed event payload")
    return event
