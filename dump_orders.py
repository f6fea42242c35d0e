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

"""Utility script to dump orders and webhook deliveries.

This script reads from the configured transactions SQLite database and prints
a summary of all stored orders, including their status and line items. With
--show_webhook_events it also prints the webhook audit log, which is where
deliveries that failed processing and need manual reconciliation show up.

Usage:
  uv run dump_orders.py --transactions_db_path=... [--show_webhook_events]
"""

import asyncio
import sys
from absl import app as absl_app
from absl import flags
import db
from db import Order
from db import WebhookEvent
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

FLAGS = flags.FLAGS
flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
flags.DEFINE_bool(
    "show_webhook_events", False, "Also print the webhook delivery log"
)


async def dump_orders():
  """Queries the database and prints all orders."""
  if not FLAGS.transactions_db_path:
    print("Error: --transactions_db_path is required.")
    sys.exit(1)

  engine = db.create_engine(FLAGS.transactions_db_path)
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )

  async with session_factory() as session:
    result = await session.execute(select(Order).order_by(Order.created_at))
    orders = result.scalars().all()

    if not orders:
      print("No orders found.")
    for order in orders:
      print(
          f"Order: {order.id} [{order.order_status}] user={order.user_id}"
          f" payment={order.payment_intent_id} ({order.payment_status})"
      )
      for item in order.items or []:
        price = item.get("price", 0) / 100.0
        qty = item.get("quantity", 0)
        print(
            f"  - {item.get('name', 'Unknown Item')} ({item.get('size')})"
            f" x{qty} @ ${price:.2f}"
        )
      print(
          f"  subtotal ${order.items_price / 100.0:.2f}"
          f"  tax ${order.tax_amount / 100.0:.2f}"
          f"  shipping ${order.shipping_amount / 100.0:.2f}"
          f"  total ${order.total_amount / 100.0:.2f}"
      )
      print("-" * 60)

    if FLAGS.show_webhook_events:
      print("=== WEBHOOK EVENTS ===")
      result = await session.execute(
          select(WebhookEvent).order_by(WebhookEvent.id)
      )
      for entry in result.scalars().all():
        print(
            f"[{entry.received_at}] {entry.event_type} {entry.event_id}"
            f" -> {entry.outcome}"
        )
        if entry.payment_intent_id:
          print(f"  Payment Intent: {entry.payment_intent_id}")
        if entry.detail:
          print(f"  Detail: {entry.detail}")

  await engine.dispose()


def main(argv):
  """Main entry point for the order dump script."""
  del argv
  asyncio.run(dump_orders())


if __name__ == "__main__":
  absl_app.run(main)
