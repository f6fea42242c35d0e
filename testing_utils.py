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

"""Shared fixtures for tests that need a transactions database."""

import asyncio
import json
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional

from absl import flags
from absl.testing import absltest
import config  # pylint: disable=unused-import  # Defines the server flags.
import db
from services.fake_payment_gateway import FakePaymentGateway
from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

FLAGS = flags.FLAGS

ALICE = "cust_alice"
BOB = "cust_bob"
ADMIN = "cust_admin"

# Subtotal $92.50: tax $6.48, total $98.98.
ALICE_ITEMS = [
    {
        "product_id": "prod_tee",
        "name": "Classic Tee",
        "quantity": 2,
        "price": 2500,
        "size": "M",
        "image": "https://example.com/images/tee.png",
    },
    {
        "product_id": "prod_hoodie",
        "name": "Zip Hoodie",
        "quantity": 1,
        "price": 4250,
        "size": "L",
        "image": "https://example.com/images/hoodie.png",
    },
]

VALID_SHIPPING = {
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "postalCode": "62701",
    "country": "US",
    "phoneNumber": "555-0100",
    "name": "Alice Example",
}


class DatabaseTestCase(absltest.TestCase):
  """Base test case with a temporary transactions DB and a fake gateway."""

  def setUp(self) -> None:
    super().setUp()
    if not FLAGS.is_parsed():
      FLAGS.mark_as_parsed()

    self.test_dir = tempfile.mkdtemp()
    self.db_path = os.path.join(self.test_dir, "test_transactions.db")
    # NullPool: every session gets its own connection, as separate requests
    # would, and no connection outlives the event loop that opened it.
    self.engine = db.create_engine(self.db_path, poolclass=NullPool)
    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async def init_schema() -> None:
      async with self.engine.begin() as conn:
        await conn.run_sync(db.TransactionBase.metadata.create_all)

    asyncio.run(init_schema())

    self.gateway = FakePaymentGateway()

  def tearDown(self) -> None:
    asyncio.run(self.engine.dispose())
    shutil.rmtree(self.test_dir)
    super().tearDown()

  def run_async(self, coro):
    return asyncio.run(coro)

  async def seed_customer(
      self,
      customer_id: str = ALICE,
      email_verified: bool = True,
      role: str = "user",
  ) -> None:
    async with self.session_factory() as session:
      session.add(
          db.Customer(
              id=customer_id,
              name=customer_id,
              email=f"{customer_id}@example.com",
              email_verified=email_verified,
              role=role,
          )
      )
      await session.commit()

  async def seed_cart(
      self, user_id: str = ALICE, items: Optional[List[Dict[str, Any]]] = None
  ) -> db.Cart:
    async with self.session_factory() as session:
      cart = await db.save_cart(
          session, user_id, ALICE_ITEMS if items is None else items
      )
      await session.commit()
      return cart

  async def get_cart(self, user_id: str = ALICE) -> Optional[db.Cart]:
    async with self.session_factory() as session:
      return await db.get_cart(session, user_id)

  async def count_orders(self) -> int:
    async with self.session_factory() as session:
      result = await session.execute(select(func.count()).select_from(db.Order))
      return result.scalar_one()

  async def get_order_for_intent(self, payment_intent_id: str):
    async with self.session_factory() as session:
      return await db.get_order_by_payment_intent(session, payment_intent_id)

  async def webhook_events(self) -> List[db.WebhookEvent]:
    async with self.session_factory() as session:
      result = await session.execute(
          select(db.WebhookEvent).order_by(db.WebhookEvent.id)
      )
      return list(result.scalars().all())

  def settled_intent(
      self,
      user_id: str = ALICE,
      amount: int = 9898,
      shipping: Optional[Dict[str, Any]] = VALID_SHIPPING,
      status: str = "succeeded",
  ):
    """Registers a paid intent carrying the metadata create_intent writes."""
    metadata = {"user_id": user_id, "cart_id": "cart_1"}
    if shipping is not None:
      metadata["shipping_info"] = json.dumps(shipping)
    return self.gateway.add_intent(amount, metadata=metadata, status=status)
