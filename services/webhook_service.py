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

"""Payment provider webhook handling.

Only the signature check decides the response: a delivery with a bad
signature is rejected, and every correctly signed delivery is acknowledged,
whatever happens while processing it. The provider retries unacknowledged
deliveries, and retrying a delivery that failed on our side only repeats the
failure. Processing failures are logged with the event type and payment
intent and recorded in the `webhook_events` table for manual reconciliation.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import db
from enums import WebhookEventType
from enums import WebhookOutcome
from exceptions import FulfillmentError
from services.order_service import OrderReconciler
from services.order_service import OrderService
from services.payment_gateway import PaymentGateway
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class WebhookDispatcher:
  """Verifies and routes payment provider webhook events."""

  def __init__(self, transactions_session: AsyncSession, gateway: PaymentGateway):
    self.transactions_session = transactions_session
    self.gateway = gateway
    self.reconciler = OrderReconciler(transactions_session, gateway)
    self.order_service = OrderService(transactions_session)

  async def dispatch(self, payload: bytes, signature: Optional[str]) -> None:
    """Verifies a delivery and processes the event it carries.

    Args:
      payload: The raw request body, exactly as received.
      signature: The provider's signature header.

    Raises:
      SignatureInvalidError: If the delivery cannot be verified. Nothing is
        processed in that case.
    """
    event = self.gateway.construct_event(payload, signature or "")
    event_id = event.get("id")
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    logger.info("Received webhook event %s (%s)", event_id, event_type)

    try:
      outcome, payment_intent_id, detail = await self._route(event_type, obj)
    except Exception as e:  # pylint: disable=broad-exception-caught
      outcome, detail = WebhookOutcome.FAILED, str(e)
      payment_intent_id = _payment_intent_id(obj)
      log = logger.warning if isinstance(e, FulfillmentError) else logger.error
      log(
          "Failed to process webhook event %s (%s) for payment intent %s: %s",
          event_id,
          event_type,
          payment_intent_id,
          e,
          exc_info=not isinstance(e, FulfillmentError),
      )

    await self._record(event_id, event_type, outcome, payment_intent_id, detail)

  async def _route(
      self, event_type: Optional[str], obj: Dict[str, Any]
  ) -> Tuple[WebhookOutcome, Optional[str], Optional[str]]:
    if event_type == WebhookEventType.PAYMENT_INTENT_SUCCEEDED.value:
      return await self._handle_payment_succeeded(obj)

    if event_type == WebhookEventType.PAYMENT_INTENT_FAILED.value:
      last_error = obj.get("last_payment_error") or {}
      logger.warning(
          "Payment failed for PaymentIntent %s: %s",
          obj.get("id"),
          last_error.get("message") or "Unknown error",
      )
      return WebhookOutcome.PROCESSED, obj.get("id"), None

    if event_type == WebhookEventType.CHARGE_REFUNDED.value:
      return await self._handle_refund(obj)

    logger.info("Unhandled event type: %s", event_type)
    return WebhookOutcome.IGNORED, _payment_intent_id(obj), None

  async def _handle_payment_succeeded(
      self, intent: Dict[str, Any]
  ) -> Tuple[WebhookOutcome, Optional[str], Optional[str]]:
    payment_intent_id = intent.get("id")
    logger.info("PaymentIntent %s was successful", payment_intent_id)

    user_id = (intent.get("metadata") or {}).get("user_id")
    if not user_id:
      logger.warning(
          "PaymentIntent %s carries no user_id metadata; cannot reconcile",
          payment_intent_id,
      )
      return WebhookOutcome.IGNORED, payment_intent_id, "no user_id metadata"

    order = await self.reconciler.reconcile(payment_intent_id, user_id)
    return WebhookOutcome.PROCESSED, payment_intent_id, f"order {order.id}"

  async def _handle_refund(
      self, charge: Dict[str, Any]
  ) -> Tuple[WebhookOutcome, Optional[str], Optional[str]]:
    payment_intent_id = _payment_intent_id(charge)
    if not payment_intent_id:
      logger.warning("Refunded charge %s has no payment intent", charge.get("id"))
      return WebhookOutcome.IGNORED, None, "no payment intent"

    order = await self.order_service.cancel_for_refund(payment_intent_id)
    if not order:
      logger.info(
          "No order recorded for refunded payment intent %s", payment_intent_id
      )
      return WebhookOutcome.IGNORED, payment_intent_id, "no order"
    return WebhookOutcome.PROCESSED, payment_intent_id, f"order {order.id}"

  async def _record(
      self,
      event_id: Optional[str],
      event_type: Optional[str],
      outcome: WebhookOutcome,
      payment_intent_id: Optional[str],
      detail: Optional[str],
  ) -> None:
    session = self.transactions_session
    try:
      if session.in_transaction():
        await session.rollback()
      await db.log_webhook_event(
          session,
          event_id=event_id,
          event_type=event_type,
          outcome=outcome.value,
          payment_intent_id=payment_intent_id,
          detail=detail,
      )
      await session.commit()
    except SQLAlchemyError as e:
      await session.rollback()
      logger.error(
          "Failed to record webhook event %s (%s, %s): %s",
          event_id,
          event_type,
          outcome.value,
          e,
      )


def _payment_intent_id(obj: Dict[str, Any]) -> Optional[str]:
  """Finds the payment intent an event object refers to."""
  if obj.get("object") == "payment_intent":
    return obj.get("id")
  payment_intent = obj.get("payment_intent")
  if isinstance(payment_intent, dict):
    return payment_intent.get("id")
  return payment_intent
