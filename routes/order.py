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

"""Order read routes for the fulfillment server."""

from typing import Any

import dependencies
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Path
from models import Identity
from models import OrderResponse
from services.order_service import OrderService

router = APIRouter(prefix="/api/payment")


@router.get(
    "/my-orders",
    response_model=dict[str, Any],
    operation_id="get_my_orders",
)
async def get_my_orders(
    identity: Identity = Depends(dependencies.get_current_identity),
    order_service: OrderService = Depends(dependencies.get_order_service),
) -> dict[str, Any]:
  """List the caller's orders, newest first."""
  orders = await order_service.list_orders(identity)
  return {
      "success": True,
      "count": len(orders),
      "orders": [OrderResponse.from_row(o).to_json() for o in orders],
  }


@router.get(
    "/order/{id}",
    response_model=dict[str, Any],
    operation_id="get_order",
)
async def get_order(
    order_id: str = Path(..., alias="id"),
    identity: Identity = Depends(dependencies.get_current_identity),
    order_service: OrderService = Depends(dependencies.get_order_service),
) -> dict[str, Any]:
  """Get an order by ID."""
  order = await order_service.get_order(order_id, identity)
  return {"success": True, "order": OrderResponse.from_row(order).to_json()}


@router.get(
    "/order-by-payment/{payment_intent_id}",
    response_model=dict[str, Any],
    operation_id="get_order_by_payment",
)
async def get_order_by_payment(
    payment_intent_id: str,
    identity: Identity = Depends(dependencies.get_current_identity),
    order_service: OrderService = Depends(dependencies.get_order_service),
) -> dict[str, Any]:
  """Get the order recorded for a payment intent."""
  order = await order_service.get_order_by_payment_intent(
      payment_intent_id, identity
  )
  return {"success": True, "order": OrderResponse.from_row(order).to_json()}


@router.post(
    "/testing/simulate-shipping/{id}",
    response_model=dict[str, Any],
    operation_id="ship_order",
    dependencies=[Depends(dependencies.verify_simulation_secret)],
)
async def ship_order(
    order_id: str = Path(..., alias="id"),
    order_service: OrderService = Depends(dependencies.get_order_service),
) -> dict[str, Any]:
  """Simulate the next fulfillment step of an order."""
  order = await order_service.advance_status(order_id)
  return {"status": order.order_status}
