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

"""Request and response models for the fulfillment REST server.

Amounts are kept in cents everywhere inside the service; the response models
render them in dollars, which is what the storefront client displays.
JSON field names are camelCase.
"""

from typing import Any, Dict, List, Optional

import db
from enums import Role
from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel


def to_dollars(cents: int) -> float:
  return cents / 100


class CamelModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShippingInfo(CamelModel):
  """Canonical shipping address."""

  address: str
  city: str
  state: str
  postal_code: str
  country: str
  phone_number: Optional[str] = None
  name: Optional[str] = None


class Identity(BaseModel):
  """The authenticated caller, as resolved from the customers table."""

  id: str
  email: Optional[str] = None
  email_verified: bool = False
  role: str = Role.USER.value

  @property
  def is_admin(self) -> bool:
    return self.role == Role.ADMIN.value


class PaymentIntentRecord(BaseModel):
  """Provider-side view of one payment attempt."""

  id: str
  amount: int
  currency: str
  status: str
  client_secret: Optional[str] = None
  metadata: Dict[str, str] = Field(default_factory=dict)


class PaymentIntentResponse(CamelModel):
  client_secret: str
  payment_intent_id: str
  amount: float
  subtotal: float
  tax_amount: float
  shipping_amount: float


class CartSummaryResponse(CamelModel):
  amount: float
  subtotal: float
  tax_amount: float
  shipping_amount: float


class ConfirmOrderRequest(BaseModel):
  """Body of the confirm-order call."""

  payment_intent_id: str = Field(
      validation_alias=AliasChoices(
          "paymentReferenceId", "paymentIntentId", "payment_intent_id"
      )
  )
  shipping_info: Optional[Dict[str, Any]] = Field(
      default=None,
      validation_alias=AliasChoices(
          "shippingInfo", "shippingAddress", "shipping_info"
      ),
  )


class OrderItem(CamelModel):
  product_id: str
  name: str
  quantity: int
  price: float
  size: Optional[str] = None
  image: Optional[str] = None


class PaymentInfo(CamelModel):
  id: str
  status: str
  payment_method: str


class OrderResponse(CamelModel):
  """Public representation of an order."""

  id: str
  user: str
  items: List[OrderItem]
  shipping_info: ShippingInfo
  payment_info: PaymentInfo
  items_price: float
  tax_amount: float
  shipping_amount: float
  total_amount: float
  order_status: str
  paid_at: str
  refunded_at: Optional[str] = None
  delivered_at: Optional[str] = None
  created_at: str

  @classmethod
  def from_row(cls, order: db.Order) -> "OrderResponse":
    """Builds the response model from a persisted order."""
    return cls(
        id=order.id,
        user=order.user_id,
        items=[
            OrderItem(
                product_id=str(item["product_id"]),
                name=item["name"],
                quantity=int(item["quantity"]),
                price=to_dollars(int(item["price"])),
                size=item.get("size"),
                image=item.get("image"),
            )
            for item in order.items
        ],
        shipping_info=ShippingInfo.model_validate(order.shipping_info),
        payment_info=PaymentInfo(
            id=order.payment_intent_id,
            status=order.payment_status,
            payment_method=order.payment_method,
        ),
        items_price=to_dollars(order.items_price),
        tax_amount=to_dollars(order.tax_amount),
        shipping_amount=to_dollars(order.shipping_amount),
        total_amount=to_dollars(order.total_amount),
        order_status=order.order_status,
        paid_at=order.paid_at,
        refunded_at=order.refunded_at,
        delivered_at=order.delivered_at,
        created_at=order.created_at,
    )

  def to_json(self) -> Dict[str, Any]:
    return self.model_dump(mode="json", by_alias=True)
