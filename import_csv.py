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

"""Database initialization script for the fulfillment server.

Customers and carts belong to other subsystems of the storefront. For local
runs this script imports them from CSV files into the configured transactions
database, clearing existing customers and carts first.

Usage:
  uv run import_csv.py --transactions_db_path=... --data_dir=...
"""

import asyncio
import collections
import csv
import logging
import os
from absl import app as absl_app
from absl import flags
import db
from db import Cart
from db import Customer
from sqlalchemy import delete

FLAGS = flags.FLAGS
flags.DEFINE_string(
    "transactions_db_path", "transactions.db", "Path to transactions DB"
)
flags.DEFINE_string(
    "data_dir",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data"),
    "Directory containing customers.csv and cart_items.csv",
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
  return value.strip().lower() in ("1", "true", "yes")


async def import_csv_data() -> None:
  """Reads CSV files and populates the database."""
  data_dir = FLAGS.data_dir
  # Ensure tables exist
  await db.manager.init_db(FLAGS.transactions_db_path)

  try:
    async with db.manager.transactions_session_factory() as session:
      logger.info("Clearing existing customers and carts...")
      await session.execute(delete(Cart))
      await session.execute(delete(Customer))

      logger.info("Importing Customers from CSV...")
      customers = []
      with open(os.path.join(data_dir, "customers.csv"), "r") as f:
        reader = csv.DictReader(f)
        for row in reader:
          customers.append(
              Customer(
                  id=row["id"],
                  name=row["name"],
                  email=row["email"],
                  email_verified=_parse_bool(row["email_verified"]),
                  role=row.get("role") or "user",
              )
          )
      session.add_all(customers)

      logger.info("Importing Carts from CSV...")
      items_by_user = collections.defaultdict(list)
      cart_items_path = os.path.join(data_dir, "cart_items.csv")
      if os.path.exists(cart_items_path):
        with open(cart_items_path, "r") as f:
          reader = csv.DictReader(f)
          for row in reader:
            items_by_user[row["user_id"]].append({
                "product_id": row["product_id"],
                "name": row["name"],
                "quantity": int(row["quantity"]),
                "price": int(row["price"]),
                "size": row.get("size") or None,
                "image": row.get("image") or None,
            })
      for user_id, items in items_by_user.items():
        await db.save_cart(session, user_id, items)

      await session.commit()
      logger.info(
          "Imported %d customers and %d carts",
          len(customers),
          len(items_by_user),
      )
  finally:
    await db.manager.close()


def main(argv):
  """Main entry point for the CSV import script."""
  del argv
  asyncio.run(import_csv_data())


if __name__ == "__main__":
  absl_app.run(main)
