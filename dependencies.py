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

"""FastAPI dependencies for the fulfillment server.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Identity resolution. Authentication happens upstream; the auth layer
  forwards the customer ID in the `X-Customer-Id` header.
- The verified-identity gate in front of checkout.
- Service instantiation (PaymentService, OrderReconciler, OrderService,
  WebhookDispatcher).
- Database session management.
- The secret check for simulation endpoints.
"""

from typing import AsyncGenerator, Optional

import config
import db
from enums import Role
from exceptions import AuthenticationError
from exceptions import UnverifiedError
from fastapi import Depends
from fastapi import Header
from fastapi import HTTPException
from models import Identity
from services.order_service import OrderReconciler
from services.order_service import OrderService
from services.payment_gateway import PaymentGateway
from services.payment_gateway import StripePaymentGateway
from services.payment_service import PaymentService
from services.webhook_service import WebhookDispatcher
from sqlalchemy.ext.asyncio import AsyncSession


async def get_transactions_db() -> AsyncGenerator[AsyncSession, None]:
  """Dependency provider for Transactions DB session."""
  async with db.manager.transactions_session_factory() as session:
    yield session


def get_payment_gateway() -> PaymentGateway:
  """Dependency provider for the payment provider gateway."""
  return StripePaymentGateway(
      api_key=config.FLAGS.stripe_secret_key,
      webhook_secret=config.FLAGS.stripe_webhook_secret,
      timeout=config.FLAGS.payment_provider_timeout,
  )


async def get_current_identity(
    customer_id: Optional[str] = Header(None, alias="X-Customer-Id"),
    session: AsyncSession = Depends(get_transactions_db),
) -> Identity:
  """Resolves the caller forwarded by the auth layer."""
  if not customer_id:
    raise AuthenticationError()
  customer = await db.get_customer(session, customer_id)
  # Release the read transaction before the endpoint opens its own.
  await session.commit()
  if not customer:
    raise AuthenticationError()
  return Identity(
      id=customer.id,
      email=customer.email,
      email_verified=bool(customer.email_verified),
      role=customer.role or Role.USER.value,
  )


async def get_verified_identity(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
  """Rejects callers that have not verified their email."""
  if not identity.email_verified:
    raise UnverifiedError()
  return identity


async def verify_simulation_secret(
    simulation_secret: Optional[str] = Header(None, alias="Simulation-Secret"),
) -> None:
  """Verifies the secret for simulation endpoints."""
  expected_secret = config.FLAGS.simulation_secret
  if not expected_secret:
    raise HTTPException(
        status_code=500, detail="Simulation secret not configured"
    )

  if not simulation_secret or simulation_secret != expected_secret:
    raise HTTPException(status_code=403, detail="Invalid Simulation Secret")


def get_payment_service(
    session: AsyncSession = Depends(get_transactions_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentService:
  """Dependency provider for PaymentService."""
  return PaymentService(session, gateway, currency=config.FLAGS.currency)


def get_order_reconciler(
    session: AsyncSession = Depends(get_transactions_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> OrderReconciler:
  """Dependency provider for OrderReconciler."""
  return OrderReconciler(session, gateway)


def get_order_service(
    session: AsyncSession = Depends(get_transactions_db),
) -> OrderService:
  """Dependency provider for OrderService."""
  return OrderService(session)


def get_webhook_dispatcher(
    session: AsyncSession = Depends(get_transactions_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> WebhookDispatcher:
  """Dependency provider for WebhookDispatcher."""
  return WebhookDispatcher(session, gateway)
