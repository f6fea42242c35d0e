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

"""Database management and persistence layer for the fulfillment service.

This module provides the schema definitions, database session management, and
asynchronous data access helpers used by the server. It utilizes SQLAlchemy with
SQLite (via aiosqlite).

Key features include:
- `DatabaseManager`: Handles asynchronous engine initialization and session
  factory setup for the transactions database.
- Write-locking transactions: every transaction is opened with
  `BEGIN IMMEDIATE`, so a reader that intends to write holds the database write
  lock from its first statement. Order reconciliation relies on this to make
  its existence-check-then-insert atomic against concurrent reconcilers.
- WAL Mode: Enabled on every connection so readers do not block the writer.
- Declarative Models: Customers and carts (owned by other subsystems, read
  here), orders, and the webhook delivery audit log.
- Data Access Helpers: Asynchronous functions for the queries the services
  issue.
"""

import datetime
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
import uuid

from enums import Role
from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import event
from sqlalchemy import Integer
from sqlalchemy import JSON
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

TransactionBase = declarative_base()

# Seconds a connection waits for the SQLite write lock before giving up.
LOCK_TIMEOUT_SECONDS = 30.0


def utc_now() -> str:
  return datetime.datetime.now(datetime.timezone.utc).isoformat()


def create_engine(path: str, **kwargs: Any) -> AsyncEngine:
  """Creates an aiosqlite engine whose transactions take the write lock.

  pysqlite's own transaction handling defers BEGIN until the first DML
  statement, which lets two transactions both read "no order yet" before
  either writes. Autocommit is disabled at the driver level and SQLAlchemy
  emits `BEGIN IMMEDIATE` itself instead.

  Args:
    path: Filesystem path of the SQLite database.
    **kwargs: Extra keyword arguments for `create_async_engine`.

  Returns:
    The configured AsyncEngine.
  """
  engine = create_async_engine(
      f"sqlite+aiosqlite:///{path}",
      echo=False,
      connect_args={"timeout": LOCK_TIMEOUT_SECONDS},
      **kwargs,
  )

  @event.listens_for(engine.sync_engine, "connect")
  def _on_connect(dbapi_connection, connection_record):
    del connection_record  # Unused.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()

  @event.listens_for(engine.sync_engine, "begin")
  def _on_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")

  return engine


class DatabaseManager:
  """Manages the database engine and sessions without using global variables."""

  def __init__(self) -> None:
    self.transactions_engine: Optional[AsyncEngine] = None
    self.transactions_session_factory: Optional[sessionmaker] = None

  async def init_db(self, transactions_path: str) -> None:
    """Initializes the database engine and creates tables."""
    self.transactions_engine = create_engine(transactions_path)
    self.transactions_session_factory = sessionmaker(
        self.transactions_engine, expire_on_commit=False, class_=AsyncSession
    )

    async with self.transactions_engine.begin() as conn:
      await conn.run_sync(TransactionBase.metadata.create_all)
    logger.info("Transactions database ready at %s", transactions_path)

  async def close(self) -> None:
    """Closes the database engine."""
    if self.transactions_engine:
      await self.transactions_engine.dispose()


# Global manager instance (to be initialized via lifespan)
manager = DatabaseManager()


class Customer(TransactionBase):
  __tablename__ = "customers"

  id = Column(String, primary_key=True)
  name = Column(String)
  email = Column(String, index=True)
  email_verified = Column(Boolean, default=False, nullable=False)
  role = Column(String, default=Role.USER.value, nullable=False)


class Cart(TransactionBase):
  __tablename__ = "carts"

  id = Column(String, primary_key=True)
  user_id = Column(String, unique=True, nullable=False)
  # [{product_id, name, quantity, price (cents), size, image}]
  items = Column(JSON, nullable=False, default=list)
  total_items = Column(Integer, nullable=False, default=0)
  total_price = Column(Integer, nullable=False, default=0)  # In cents


class Order(TransactionBase):
  __tablename__ = "orders"

  id = Column(String, primary_key=True)
  user_id = Column(String, index=True, nullable=False)
  items = Column(JSON, nullable=False)
  shipping_info = Column(JSON, nullable=False)
  payment_intent_id = Column(String, unique=True, nullable=False)
  payment_status = Column(String, nullable=False)
  payment_method = Column(String, nullable=False, default="stripe")
  items_price = Column(Integer, nullable=False)  # In cents
  tax_amount = Column(Integer, nullable=False)
  shipping_amount = Column(Integer, nullable=False)
  total_amount = Column(Integer, nullable=False)
  order_status = Column(String, nullable=False)
  paid_at = Column(String, nullable=False)
  refunded_at = Column(String, nullable=True)
  delivered_at = Column(String, nullable=True)
  created_at = Column(String, nullable=False)


class WebhookEvent(TransactionBase):
  __tablename__ = "webhook_events"

  id = Column(Integer, primary_key=True, autoincrement=True)
  event_id = Column(String, index=True)
  event_type = Column(String)
  payment_intent_id = Column(String, index=True, nullable=True)
  outcome = Column(String)
  detail = Column(Text, nullable=True)
  received_at = Column(String)


# --- Data Access Helpers ---


async def get_customer(
    session: AsyncSession, customer_id: str
) -> Optional[Customer]:
  """Retrieves a customer by ID."""
  return await session.get(Customer, customer_id)


async def get_cart(session: AsyncSession, user_id: str) -> Optional[Cart]:
  """Retrieves the cart owned by a user."""
  result = await session.execute(select(Cart).where(Cart.user_id == user_id))
  return result.scalar_one_or_none()


async def save_cart(
    session: AsyncSession, user_id: str, items: List[Dict[str, Any]]
) -> Cart:
  """Creates or replaces a user's cart, recalculating its totals.

  Cart mutation belongs to the cart subsystem; this helper exists for seeding
  and tests and keeps the subtotal invariant the same way that subsystem does.

  Args:
    session: The database session.
    user_id: The owning customer's ID.
    items: Line items with `price` in cents.

  Returns:
    The saved Cart.
  """
  cart = await get_cart(session, user_id)
  if not cart:
    cart = Cart(id=str(uuid.uuid4()), user_id=user_id)
    session.add(cart)
  cart.items = list(items)
  cart.total_items = sum(int(item["quantity"]) for item in items)
  cart.total_price = sum(
      int(item["price"]) * int(item["quantity"]) for item in items
  )
  return cart


async def delete_cart(session: AsyncSession, cart: Cart) -> None:
  """Deletes a cart."""
  await session.delete(cart)


async def get_order(session: AsyncSession, order_id: str) -> Optional[Order]:
  """Retrieves an order by ID."""
  return await session.get(Order, order_id)


async def get_order_by_payment_intent(
    session: AsyncSession, payment_intent_id: str
) -> Optional[Order]:
  """Retrieves the order recorded for a payment intent, if any."""
  result = await session.execute(
      select(Order).where(Order.payment_intent_id == payment_intent_id)
  )
  return result.scalar_one_or_none()


async def list_orders_for_user(
    session: AsyncSession, user_id: str
) -> List[Order]:
  """Retrieves a user's orders, newest first."""
  result = await session.execute(
      select(Order)
      .where(Order.user_id == user_id)
      .order_by(Order.created_at.desc())
  )
  return list(result.scalars().all())


async def insert_order(session: AsyncSession, order: Order) -> None:
  """Adds an order and flushes it so uniqueness is enforced immediately."""
  session.add(order)
  await session.flush()


async def log_webhook_event(
    session: AsyncSession,
    event_id: Optional[str],
    event_type: Optional[str],
    outcome: str,
    payment_intent_id: Optional[str] = None,
    detail: Optional[str] = None,
) -> None:
  """Records a webhook delivery in the audit log."""
  entry = WebhookEvent(
      event_id=event_id,
      event_type=event_type,
      payment_intent_id=payment_intent_id,
      outcome=outcome,
      detail=detail,
      received_at=utc_now(),
  )
  session.add(entry)
