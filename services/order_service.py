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

"""Order reconciliation and order lifecycle.

This module turns "the provider says the payment settled" into "exactly one
order exists". Two independent callers reach `OrderReconciler.reconcile` for
the same payment intent: the client's confirm-order request and the
provider's `payment_intent.succeeded` webhook. They can arrive in any order,
concurrently, and more than once.

Key responsibilities include:
- Verifying with the provider that the payment actually settled.
- Creating the order and deleting the cart in one transaction.
- Returning the existing order when the payment intent was already
  reconciled. The existence check runs inside the write-locked transaction;
  the unique index on `orders.payment_intent_id` is the backstop if a
  concurrent writer still gets there first.
- Read paths and status transitions for existing orders (`OrderService`).
"""

import json
import logging
from typing import Any, Dict, List, Optional
import uuid

import db
from enums import OrderPaymentStatus
from enums import OrderStatus
from enums import PaymentIntentStatus
from exceptions import EmptyCartError
from exceptions import ForbiddenError
from exceptions import MissingShippingError
from exceptions import OrderNotModifiableError
from exceptions import PaymentNotCompleteError
from exceptions import PaymentOwnershipError
from exceptions import ResourceNotFoundError
from exceptions import TransactionConflictError
from models import Identity
from models import PaymentIntentRecord
from services import pricing
from services import shipping
from services.payment_gateway import PaymentGateway
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Status transitions allowed by the fulfillment flow.
_NEXT_STATUS = {
    OrderStatus.PROCESSING.value: OrderStatus.SHIPPED.value,
    OrderStatus.SHIPPED.value: OrderStatus.DELIVERED.value,
}


def _shipping_from_metadata(
    intent: PaymentIntentRecord,
) -> Optional[Dict[str, Any]]:
  raw = intent.metadata.get("shipping_info")
  if not raw:
    return None
  try:
    recovered = json.loads(raw)
  except ValueError:
    logger.warning(
        "Unreadable shipping metadata on payment intent %s", intent.id
    )
    return None
  return recovered if isinstance(recovered, dict) else None


class OrderReconciler:
  """Creates the order for a settled payment intent, exactly once."""

  def __init__(self, transactions_session: AsyncSession, gateway: PaymentGateway):
    self.transactions_session = transactions_session
    self.gateway = gateway

  async def reconcile(
      self,
      payment_intent_id: str,
      user_id: str,
      explicit_shipping_info: Optional[Any] = None,
  ) -> db.Order:
    """Returns the order for a payment intent, creating it if needed.

    Args:
      payment_intent_id: The provider's payment intent ID.
      user_id: The customer whose cart becomes the order.
      explicit_shipping_info: Shipping data supplied by the caller. When
        absent the address stored on the intent's metadata is used.

    Returns:
      The created or pre-existing order.

    Raises:
      PaymentNotCompleteError: The provider does not report the payment as
        succeeded.
      PaymentOwnershipError: The intent was opened for another customer.
      EmptyCartError: The customer has no cart to turn into an order.
      MissingShippingError: No shipping data was supplied or recoverable.
      InvalidShippingError: The shipping data failed validation.
      PaymentProviderTimeoutError: The provider did not answer in time.
      TransactionConflictError: A concurrent insert won and its order could
        not be read back.
    """
    session = self.transactions_session
    if session.in_transaction():
      await session.commit()

    try:
      # Opens the transaction (BEGIN IMMEDIATE) before talking to the
      # provider; the write lock is held until commit or rollback.
      await session.connection()

      intent = await self.gateway.retrieve_intent(payment_intent_id)
      if intent.status != PaymentIntentStatus.SUCCEEDED.value:
        logger.info(
            "Payment intent %s not settled (status %s)",
            payment_intent_id,
            intent.status,
        )
        raise PaymentNotCompleteError()

      owner = intent.metadata.get("user_id")
      if owner and owner != user_id:
        raise PaymentOwnershipError(
            "Payment intent does not belong to this account"
        )

      existing = await db.get_order_by_payment_intent(
          session, payment_intent_id
      )
      if existing:
        await session.commit()
        logger.info(
            "Payment intent %s already reconciled as order %s",
            payment_intent_id,
            existing.id,
        )
        return existing

      cart = await db.get_cart(session, user_id)
      if not cart or not cart.items:
        raise EmptyCartError()

      raw_shipping = explicit_shipping_info
      if raw_shipping is None:
        raw_shipping = _shipping_from_metadata(intent)
      if raw_shipping is None:
        raise MissingShippingError()
      shipping_info = shipping.validate_shipping_info(raw_shipping)

      breakdown = pricing.price(cart.total_price)
      if breakdown.total != intent.amount:
        logger.warning(
            "Order total %d differs from amount %d paid on intent %s",
            breakdown.total,
            intent.amount,
            payment_intent_id,
        )

      now = db.utc_now()
      order = db.Order(
          id=str(uuid.uuid4()),
          user_id=user_id,
          items=[dict(item) for item in cart.items],
          shipping_info=shipping_info.model_dump(mode="json", by_alias=True),
          payment_intent_id=payment_intent_id,
          payment_status=OrderPaymentStatus.SUCCEEDED.value,
          payment_method="stripe",
          items_price=breakdown.subtotal,
          tax_amount=breakdown.tax,
          shipping_amount=breakdown.shipping,
          total_amount=breakdown.total,
          order_status=OrderStatus.PROCESSING.value,
          paid_at=now,
          created_at=now,
      )
      await db.insert_order(session, order)
      await db.delete_cart(session, cart)

      # Commit the order insert and cart deletion atomically
      await session.commit()

    except IntegrityError as e:
      await session.rollback()
      winner = await db.get_order_by_payment_intent(session, payment_intent_id)
      await session.commit()
      if winner:
        logger.info(
            "Lost reconciliation race for payment intent %s; returning order"
            " %s",
            payment_intent_id,
            winner.id,
        )
        return winner
      raise TransactionConflictError(
          f"Could not record order for payment intent {payment_intent_id}"
      ) from e
    except Exception:
      await session.rollback()
      raise

    logger.info(
        "Order %s created for user %s from payment intent %s",
        order.id,
        user_id,
        payment_intent_id,
    )
    return order


class OrderService:
  """Read paths and post-payment transitions for orders."""

  def __init__(self, transactions_session: AsyncSession):
    self.transactions_session = transactions_session

  @staticmethod
  def _ensure_can_view(order: db.Order, identity: Identity) -> None:
    if order.user_id != identity.id and not identity.is_admin:
      raise ForbiddenError("You are not authorized to access this order")

  async def list_orders(self, identity: Identity) -> List[db.Order]:
    orders = await db.list_orders_for_user(
        self.transactions_session, identity.id
    )
    await self.transactions_session.commit()
    return orders

  async def get_order(self, order_id: str, identity: Identity) -> db.Order:
    """Retrieves an order the caller owns (or any order, for admins)."""
    order = await db.get_order(self.transactions_session, order_id)
    await self.transactions_session.commit()
    if not order:
      raise ResourceNotFoundError("Order not found")
    self._ensure_can_view(order, identity)
    return order

  async def get_order_by_payment_intent(
      self, payment_intent_id: str, identity: Identity
  ) -> db.Order:
    """Retrieves the order recorded for a payment intent."""
    order = await db.get_order_by_payment_intent(
        self.transactions_session, payment_intent_id
    )
    await self.transactions_session.commit()
    if not order:
      raise ResourceNotFoundError("Order not found")
    self._ensure_can_view(order, identity)
    return order

  async def advance_status(self, order_id: str) -> db.Order:
    """Moves an order one step along Processing -> Shipped -> Delivered."""
    order = await db.get_order(self.transactions_session, order_id)
    if not order:
      await self.transactions_session.rollback()
      raise ResourceNotFoundError("Order not found")

    current_status = order.order_status
    next_status = _NEXT_STATUS.get(current_status)
    if next_status is None:
      # Rollback expires the instance; read nothing from it afterwards.
      await self.transactions_session.rollback()
      raise OrderNotModifiableError(
          f"Cannot advance order in status {current_status}"
      )

    order.order_status = next_status
    if next_status == OrderStatus.DELIVERED.value:
      order.delivered_at = db.utc_now()
    await self.transactions_session.commit()

    logger.info("Order %s is now %s", order.id, next_status)
    return order

  async def cancel_for_refund(self, payment_intent_id: str) -> Optional[db.Order]:
    """Cancels the order of a refunded payment.

    Args:
      payment_intent_id: The refunded payment intent.

    Returns:
      The cancelled order, or None if no order was recorded for the intent.
    """
    order = await db.get_order_by_payment_intent(
        self.transactions_session, payment_intent_id
    )
    if not order:
      await self.transactions_session.commit()
      return None

    order.order_status = OrderStatus.CANCELLED.value
    order.payment_status = OrderPaymentStatus.REFUNDED.value
    order.refunded_at = db.utc_now()
    await self.transactions_session.commit()

    logger.info(
        "Order %s cancelled after refund of payment intent %s",
        order.id,
        payment_intent_id,
    )
    return order
