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

"""Integration tests for the Fulfillment Server."""

import json
from typing import Any, AsyncGenerator, Dict, Optional
from unittest import mock

from absl.testing import absltest
from absl.testing import flagsaver
import dependencies
from fastapi.testclient import TestClient
from server import app
from services.fake_payment_gateway import sign_payload
from services.payment_service import PaymentService
from sqlalchemy.ext.asyncio import AsyncSession
import testing_utils
from testing_utils import ADMIN
from testing_utils import ALICE
from testing_utils import BOB
from testing_utils import VALID_SHIPPING


class IntegrationTest(testing_utils.DatabaseTestCase):
  """Integration tests for the fulfillment server application."""

  def setUp(self) -> None:
    super().setUp()

    async def override_get_transactions_db() -> (
        AsyncGenerator[AsyncSession, None]
    ):
      async with self.session_factory() as session:
        yield session

    app.dependency_overrides[dependencies.get_transactions_db] = (
        override_get_transactions_db
    )
    app.dependency_overrides[dependencies.get_payment_gateway] = (
        lambda: self.gateway
    )

    self.client = TestClient(app)
    self._seed_data()

  def tearDown(self) -> None:
    app.dependency_overrides.clear()
    super().tearDown()

  def _seed_data(self) -> None:
    async def seed() -> None:
      await self.seed_customer(ALICE)
      await self.seed_customer(BOB, email_verified=False)
      await self.seed_customer(ADMIN, role="admin")
      await self.seed_cart(ALICE)

    self.run_async(seed())

  def _headers(self, customer_id: Optional[str] = ALICE) -> Dict[str, str]:
    return {"X-Customer-Id": customer_id} if customer_id else {}

  def _create_intent(self, shipping=None) -> Dict[str, Any]:
    response = self.client.post(
        "/api/payment/create-payment-intent",
        json=shipping or VALID_SHIPPING,
        headers=self._headers(),
    )
    self.assertEqual(response.status_code, 200, response.text)
    return response.json()

  def _confirm(self, payment_intent_id: str, customer_id: str = ALICE):
    return self.client.post(
        "/api/payment/confirm-order",
        json={
            "paymentIntentId": payment_intent_id,
            "shippingInfo": VALID_SHIPPING,
        },
        headers=self._headers(customer_id),
    )

  def _place_order(self) -> Dict[str, Any]:
    intent = self._create_intent()
    self.gateway.settle(intent["paymentIntentId"])
    response = self._confirm(intent["paymentIntentId"])
    self.assertEqual(response.status_code, 201, response.text)
    return response.json()["order"]

  def test_checkout_flow(self) -> None:
    intent = self._create_intent()
    self.assertTrue(intent["success"])
    self.assertEqual(intent["amount"], 98.98)
    self.assertEqual(intent["subtotal"], 92.5)
    self.assertEqual(intent["taxAmount"], 6.48)
    self.assertEqual(intent["shippingAmount"], 0)
    self.assertTrue(intent["clientSecret"])

    self.gateway.settle(intent["paymentIntentId"])
    response = self._confirm(intent["paymentIntentId"])

    self.assertEqual(response.status_code, 201, response.text)
    order = response.json()["order"]
    self.assertEqual(order["user"], ALICE)
    self.assertEqual(order["itemsPrice"], 92.5)
    self.assertEqual(order["taxAmount"], 6.48)
    self.assertEqual(order["totalAmount"], 98.98)
    self.assertEqual(order["orderStatus"], "Processing")
    self.assertEqual(order["paymentInfo"]["id"], intent["paymentIntentId"])
    self.assertEqual(order["paymentInfo"]["status"], "succeeded")
    self.assertEqual(order["shippingInfo"]["postalCode"], "62701")
    self.assertLen(order["items"], 2)
    self.assertIsNone(self.run_async(self.get_cart(ALICE)))

  def test_double_confirm_returns_same_order(self) -> None:
    order = self._place_order()

    response = self._confirm(order["paymentInfo"]["id"])

    self.assertEqual(response.status_code, 201, response.text)
    self.assertEqual(response.json()["order"]["id"], order["id"])
    self.assertEqual(self.run_async(self.count_orders()), 1)

  def test_create_intent_alias_and_legacy_body(self) -> None:
    response = self.client.post(
        "/api/payment/create-intent",
        json={
            "shippingAddress": {
                "street": "1 Main St",
                "city": "X",
                "state": "Y",
                "zip": "10001",
                "country": "US",
            }
        },
        headers=self._headers(),
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(response.json()["amount"], 98.98)

  def test_confirm_accepts_payment_reference_id(self) -> None:
    intent = self._create_intent()
    self.gateway.settle(intent["paymentIntentId"])

    response = self.client.post(
        "/api/payment/confirm-order",
        json={"paymentReferenceId": intent["paymentIntentId"]},
        headers=self._headers(),
    )

    self.assertEqual(response.status_code, 201, response.text)
    # Shipping came from the intent's metadata.
    self.assertEqual(
        response.json()["order"]["shippingInfo"]["city"], "Springfield"
    )

  def test_confirm_unsettled_payment(self) -> None:
    intent = self._create_intent()

    response = self._confirm(intent["paymentIntentId"])

    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["code"], "PAYMENT_NOT_COMPLETE")
    self.assertIsNotNone(self.run_async(self.get_cart(ALICE)))

  def test_unverified_caller(self) -> None:
    response = self.client.post(
        "/api/payment/create-payment-intent",
        json=VALID_SHIPPING,
        headers=self._headers(BOB),
    )

    self.assertEqual(response.status_code, 403)
    self.assertEqual(response.json()["code"], "UNVERIFIED")
    self.assertEmpty(self.gateway.created)

  def test_missing_identity(self) -> None:
    response = self.client.post(
        "/api/payment/create-payment-intent",
        json=VALID_SHIPPING,
        headers=self._headers(None),
    )
    self.assertEqual(response.status_code, 401)
    self.assertEqual(response.json()["code"], "UNAUTHENTICATED")

    response = self.client.get(
        "/api/payment/my-orders", headers=self._headers("cust_nobody")
    )
    self.assertEqual(response.status_code, 401)

  def test_invalid_shipping(self) -> None:
    response = self.client.post(
        "/api/payment/create-payment-intent",
        json=dict(VALID_SHIPPING, country="ZZ"),
        headers=self._headers(),
    )

    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["code"], "INVALID_SHIPPING")
    self.assertIn("ZZ", response.json()["detail"])

  def test_missing_body(self) -> None:
    response = self.client.post(
        "/api/payment/create-payment-intent", headers=self._headers()
    )
    self.assertEqual(response.status_code, 400)

  def test_empty_cart(self) -> None:
    self._place_order()

    response = self.client.post(
        "/api/payment/create-payment-intent",
        json=VALID_SHIPPING,
        headers=self._headers(),
    )

    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["code"], "CART_EMPTY")

  def test_webhook_rejects_bad_signature(self) -> None:
    payload = json.dumps({"id": "evt_1", "type": "customer.created"}).encode()

    response = self.client.post(
        "/api/payment/webhook",
        content=payload,
        headers={"Stripe-Signature": "t=1,v1=deadbeef"},
    )

    self.assertEqual(response.status_code, 400)
    self.assertEqual(response.json()["code"], "SIGNATURE_INVALID")

  def test_webhook_creates_order(self) -> None:
    intent = self._create_intent()
    self.gateway.settle(intent["paymentIntentId"])
    record = self.gateway.intents[intent["paymentIntentId"]]
    payload = json.dumps({
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": record.id,
                "object": "payment_intent",
                "metadata": record.metadata,
            }
        },
    }).encode()

    response = self.client.post(
        "/api/payment/webhook",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload)},
    )

    self.assertEqual(response.status_code, 200, response.text)
    self.assertEqual(response.json(), {"received": True})
    self.assertEqual(self.run_async(self.count_orders()), 1)

    # The client's confirmation arrives afterwards and sees the same order.
    confirm = self._confirm(record.id)
    self.assertEqual(confirm.status_code, 201, confirm.text)
    stored = self.run_async(self.get_order_for_intent(record.id))
    self.assertEqual(confirm.json()["order"]["id"], stored.id)

  def test_webhook_acknowledges_failed_processing(self) -> None:
    intent = self._create_intent()
    payload = json.dumps({
        "id": "evt_2",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent["paymentIntentId"],
                "object": "payment_intent",
                "metadata": {"user_id": ALICE},
            }
        },
    }).encode()

    response = self.client.post(
        "/api/payment/webhook",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload)},
    )

    self.assertEqual(response.status_code, 200)
    self.assertEqual(self.run_async(self.count_orders()), 0)
    self.assertEqual(self.run_async(self.webhook_events())[0].outcome, "failed")

  def test_order_access(self) -> None:
    order = self._place_order()
    path = f"/api/payment/order/{order['id']}"

    response = self.client.get(path, headers=self._headers())
    self.assertEqual(response.status_code, 200)
    self.assertEqual(response.json()["order"]["id"], order["id"])

    response = self.client.get(path, headers=self._headers(BOB))
    self.assertEqual(response.status_code, 403)
    self.assertEqual(response.json()["code"], "FORBIDDEN")

    response = self.client.get(path, headers=self._headers(ADMIN))
    self.assertEqual(response.status_code, 200)

    response = self.client.get(
        "/api/payment/order/missing", headers=self._headers()
    )
    self.assertEqual(response.status_code, 404)

  def test_my_orders(self) -> None:
    order = self._place_order()

    response = self.client.get(
        "/api/payment/my-orders", headers=self._headers()
    )
    self.assertEqual(response.status_code, 200)
    self.assertEqual(response.json()["count"], 1)
    self.assertEqual(response.json()["orders"][0]["id"], order["id"])

    response = self.client.get(
        "/api/payment/my-orders", headers=self._headers(BOB)
    )
    self.assertEqual(response.json()["count"], 0)

  def test_order_by_payment(self) -> None:
    order = self._place_order()

    response = self.client.get(
        f"/api/payment/order-by-payment/{order['paymentInfo']['id']}",
        headers=self._headers(),
    )

    self.assertEqual(response.status_code, 200)
    self.assertEqual(response.json()["order"]["id"], order["id"])

  def test_cart_summary(self) -> None:
    response = self.client.get(
        "/api/payment/cart-summary", headers=self._headers()
    )

    self.assertEqual(response.status_code, 200)
    self.assertEqual(response.json()["amount"], 98.98)
    self.assertEqual(response.json()["taxAmount"], 6.48)

  @flagsaver.flagsaver(simulation_secret="test-secret")
  def test_simulate_shipping(self) -> None:
    order = self._place_order()
    path = f"/api/payment/testing/simulate-shipping/{order['id']}"

    response = self.client.post(path)
    self.assertEqual(response.status_code, 403)

    response = self.client.post(path, headers={"Simulation-Secret": "test-secret"})
    self.assertEqual(response.status_code, 200)
    self.assertEqual(response.json(), {"status": "Shipped"})

    response = self.client.post(path, headers={"Simulation-Secret": "test-secret"})
    self.assertEqual(response.json(), {"status": "Delivered"})

    response = self.client.post(path, headers={"Simulation-Secret": "test-secret"})
    self.assertEqual(response.status_code, 409)

  def test_unexpected_error_is_hidden(self) -> None:
    client = TestClient(app, raise_server_exceptions=False)

    with mock.patch.object(
        PaymentService,
        "cart_summary",
        mock.AsyncMock(side_effect=RuntimeError("db password is hunter2")),
    ):
      response = client.get(
          "/api/payment/cart-summary", headers=self._headers()
      )

    self.assertEqual(response.status_code, 500)
    self.assertEqual(
        response.json(),
        {"detail": "Internal server error", "code": "INTERNAL_ERROR"},
    )


if __name__ == "__main__":
  absltest.main()
