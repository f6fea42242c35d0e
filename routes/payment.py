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

"""Payment routes: intent creation, order confirmation and the webhook."""

from typing import Any, Dict, Optional

import dependencies
from exceptions import MissingShippingError
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Header
from fastapi import Request
from models import ConfirmOrderRequest
from models import Identity
from models import OrderResponse
from services.order_service import OrderReconciler
from services.payment_service import PaymentService
from services.webhook_service import WebhookDispatcher

router = APIRouter(prefix="/api/payment")


@router.get(
    "/cart-summary",
    response_model=dict[str, Any],
    operation_id="get_cart_summary",
)
async def get_cart_summary(
    identity: Identity = Depends(dependencies.get_current_identity),
    payment_service: PaymentService = Depends(
        dependencies.get_payment_service
    ),
) -> dict[str, Any]:
  """Price the current cart without creating a payment intent."""
  summary = await payment_service.cart_summary(identity)
  return {"success": True, **summary.model_dump(mode="json", by_alias=True)}


@router.post(
    "/create-payment-intent",
    response_model=dict[str, Any],
    operation_id="create_payment_intent",
)
@router.post(
    "/create-intent",
    response_model=dict[str, Any],
    include_in_schema=False,
)
async def create_payment_intent(
    body: Optional[Dict[str, Any]] = Body(None),
    identity: Identity = Depends(dependencies.get_verified_identity),
    payment_service: PaymentService = Depends(
        dependencies.get_payment_service
    ),
) -> dict[str, Any]:
  """Open a payment intent sized to the current cart."""
  if not body:
    raise MissingShippingError()
  result = await payment_service.create_intent(identity, body)
  return {"success": True, **result.model_dump(mode="json", by_alias=True)}


@router.post(
    "/confirm-order",
    response_model=dict[str, Any],
    status_code=201,
    operation_id="confirm_order",
)
async def confirm_order(
    confirm_req: ConfirmOrderRequest = Body(...),
    identity: Identity = Depends(dependencies.get_verified_identity),
    reconciler: OrderReconciler = Depends(dependencies.get_order_reconciler),
) -> dict[str, Any]:
  """Record the order for a payment the client completed.

  Returns the same order on every call for a given payment intent, including
  when the webhook recorded it first.
  """
  order = await reconciler.reconcile(
      confirm_req.payment_intent_id,
      identity.id,
      explicit_shipping_info=confirm_req.shipping_info,
  )
  return {"success": True, "order": OrderResponse.from_row(order).to_json()}


@router.post(
    "/webhook",
    response_model=dict[str, Any],
    operation_id="payment_webhook",
)
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    dispatcher: WebhookDispatcher = Depends(
        dependencies.get_webhook_dispatcher
    ),
) -> dict[str, Any]:
  """Receive payment provider events.

  The body is read raw: the signature covers the exact bytes sent.
  """
  payload = await request.body()
  await dispatcher.dispatch(payload, stripe_signature)
  return {"received": True}
