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

"""Storefront Fulfillment Server (Python/FastAPI)."""

import logging
import sys
from typing import Sequence
from absl import app as absl_app
import config
from exceptions import FulfillmentError
from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from routes.order import router as order_router
from routes.payment import router as payment_router
import uvicorn

# --- App Setup ---

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Storefront Fulfillment Service",
    version=config.get_server_version(),
    description="Payment intent and order reconciliation for the storefront",
    lifespan=config.lifespan,
)


@app.exception_handler(FulfillmentError)
async def fulfillment_exception_handler(
    request: Request, exc: FulfillmentError
):
  """Converts expected service errors into JSON responses."""
  if exc.status_code >= 500:
    logger.error(
        "%s %s failed: %s", request.method, request.url.path, exc.message
    )
  else:
    logger.warning(
        "%s %s rejected (%s): %s",
        request.method,
        request.url.path,
        exc.code,
        exc.message,
    )
  return JSONResponse(
      status_code=exc.status_code,
      content={"detail": exc.message, "code": exc.code},
  )


@app.exception_handler(Exception)
async def unexpected_exception_handler(request: Request, exc: Exception):
  """Logs unexpected errors and hides their details from the client."""
  logger.error(
      "Unhandled error in %s %s",
      request.method,
      request.url.path,
      exc_info=exc,
  )
  return JSONResponse(
      status_code=500,
      content={"detail": "Internal server error", "code": "INTERNAL_ERROR"},
  )


app.include_router(payment_router)
app.include_router(order_router)


def main(argv: Sequence[str]) -> None:
  """Main entry point for the Fulfillment Server."""
  del argv  # Unused.

  if config.FLAGS.transactions_db_path is None or config.FLAGS.port is None:
    logger.error("Both --transactions_db_path and --port must be provided.")
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  if not config.FLAGS.stripe_secret_key or not config.FLAGS.stripe_webhook_secret:
    logger.warning(
        "Stripe credentials are not configured; payment calls will fail."
    )

  uvicorn.run(app, host="0.0.0.0", port=config.FLAGS.port)


if __name__ == "__main__":
  absl_app.run(main)
