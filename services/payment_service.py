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

"""Payment intent creation.

`PaymentService.create_intent` reserves a price for the caller's cart and
opens a payment channel with the provider. It never touches orders or carts;
the order is created later by the reconciler once the provider reports the
payment as settled. The normalized shipping address travels to that point in
the intent's metadata, which is how the webhook path recovers it.
"""

import json
import logging
from typing import Any

import db
from exceptions import EmptyCartError
from exceptions import UnverifiedError
from models import CartSummaryResponse
from models import Identity
from models import PaymentIntentResponse
from models import to_dollars
from services import pricing
from services import shipping
from services.payment_gateway import PaymentGateway
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class PaymentService:
  """Service for opening payment intents and summarizing carts."""

  def __init__(
      self,
      transactions_session: AsyncSession,
      gateway: PaymentGateway,
      currency: str = "usd",
  ):
    self.transactions_session = transactions_session
    self.gateway = gateway
    self.currency = currency

  async def _get_non_empty_cart(self, user_id: str) -> db.Cart:
    cart = await db.get_cart(self.transactions_session, user_id)
    if not cart or not cart.items:
      raise EmptyCartError()
    return cart

  async def create_intent(
      self, identity: Identity, raw_shipping_info: Any
  ) -> PaymentIntentResponse:
    """Opens a payment intent sized to the caller's cart total.

    Args:
      identity: The authenticated caller.
      raw_shipping_info: Shipping data in any tolerated shape.

    Returns:
      The client secret and the amounts the intent was opened for.

    Raises:
      UnverifiedError: If the caller has not verified their email.
      InvalidShippingError: If the shipping data is incomplete or invalid.
      EmptyCartError: If the caller's cart has no items.
    """
    if not identity.email_verified:
      raise UnverifiedError()

    shipping_info = shipping.validate_shipping_info(raw_shipping_info)

    cart = await self._get_non_empty_cart(identity.id)
    breakdown = pricing.price(cart.total_price)
    # The read above opened a transaction; release the write lock before
    # calling out to the provider.
    await self.transactions_session.commit()

    metadata = {
        "user_id": identity.id,
        "cart_id": cart.id,
        "shipping_info": json.dumps(
            shipping_info.model_dump(mode="json", by_alias=True),
            separators=(",", ":"),
        ),
    }
    intent = await self.gateway.create_intent(
        amount=breakdown.total,
        currency=self.currency,
        metadata=metadata,
        receipt_email=identity.email,
    )

    logger.info(
        "Payment intent %s created for user %s with amount %.2f",
        intent.id,
        identity.id,
        to_dollars(breakdown.total),
    )

    return PaymentIntentResponse(
        client_secret=intent.client_secret or "",
        payment_intent_id=intent.id,
        amount=to_dollars(breakdown.total),
        subtotal=to_dollars(breakdown.subtotal),
        tax_amount=to_dollars(breakdown.tax),
        shipping_amount=to_dollars(breakdown.shipping),
    )

  async def cart_summary(self, identity: Identity) -> CartSummaryResponse:
    """Prices the caller's cart without contacting the provider."""
    cart = await self._get_non_empty_cart(identity.id)
    await self.transactions_session.commit()
    breakdown = pricing.price(cart.total_price)

    logger.info(
        "Cart summary fetched for user %s with amount %.2f",
        identity.id,
        to_dollars(breakdown.total),
    )

    return CartSummaryResponse(
        amount=to_dollars(breakdown.total),
        subtotal=to_dollars(breakdown.subtotal),
        tax_amount=to_dollars(breakdown.tax),
        shipping_amount=to_dollars(breakdown.shipping),
    )
