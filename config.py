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

"""Shared configuration and startup logic for the fulfillment server."""

import contextlib
from importlib import metadata
import os
import uuid
from absl import flags
import db
from fastapi import FastAPI

FLAGS = flags.FLAGS

PACKAGE_NAME = "storefront-fulfillment"

_SERVER_VERSION_CACHE = None


def get_server_version() -> str:
  """Reads and caches the server version from the installed distribution."""
  global _SERVER_VERSION_CACHE
  if _SERVER_VERSION_CACHE:
    return _SERVER_VERSION_CACHE

  try:
    _SERVER_VERSION_CACHE = metadata.version(PACKAGE_NAME)
  except metadata.PackageNotFoundError:
    _SERVER_VERSION_CACHE = "0.0.0.dev0"
  return _SERVER_VERSION_CACHE


# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
  flags.DEFINE_integer("port", None, "Port to run the server on")
  flags.DEFINE_string(
      "stripe_secret_key",
      os.environ.get("STRIPE_SECRET_KEY"),
      "Stripe API secret key",
  )
  flags.DEFINE_string(
      "stripe_webhook_secret",
      os.environ.get("STRIPE_WEBHOOK_SECRET"),
      "Shared secret used to verify Stripe webhook signatures",
  )
  flags.DEFINE_string("currency", "usd", "ISO currency for payment intents")
  flags.DEFINE_float(
      "payment_provider_timeout",
      10.0,
      "Seconds to wait for a payment provider call before aborting",
  )
  flags.DEFINE_string(
      "simulation_secret",
      str(uuid.uuid4()),
      "Secret key for simulation endpoints",
  )
except flags.DuplicateFlagError:
  pass


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Shared lifespan manager for initializing the database."""
  del app  # Unused.
  # In tests or if flags aren't set, this might be None, handled by caller
  if FLAGS.transactions_db_path:
    await db.manager.init_db(FLAGS.transactions_db_path)
  yield
  await db.manager.close()
