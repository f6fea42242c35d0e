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

"""In-memory payment gateway for tests and local runs.

Intents live in a dict and change status only when told to. Webhook
signatures are still verified with the real Stripe scheme, so payloads must be
signed with `sign_payload` using the gateway's webhook secret.
"""

import asyncio
import hashlib
import hmac
import time
from typing import Dict, Optional
import uuid

from enums import PaymentIntentStatus
from exceptions import InvalidRequestError
from models import PaymentIntentRecord
from services.payment_gateway import StripePaymentGateway

TEST_WEBHOOK_SECRET = "whsec_test_secret"


def sign_payload(
    payload: bytes,
    secret: str = TEST_WEBHOOK_SECRET,
    timestamp: Optional[int] = None,
) -> str:
  """Builds a `Stripe-Signature` header value for a payload."""
  timestamp = int(time.time()) if timestamp is None else timestamp
  signed = f"{timestamp}.".encode("utf-8") + payload
  digest = hmac.new(
      secret.encode("utf-8"), signed, hashlib.sha256
  ).hexdigest()
  return f"t={timestamp},v1={digest}"


class FakePaymentGateway(StripePaymentGateway):
  """PaymentGateway that never leaves the process."""

  def __init__(self, webhook_secret: str = TEST_WEBHOOK_SECRET):
    super().__init__(api_key="sk_test_fake", webhook_secret=webhook_secret)
    self.intents: Dict[str, PaymentIntentRecord] = {}
    self.created = []
    self.retrieve_calls = 0
    self.retrieve_error: Optional[Exception] = None

  async def create_intent(
      self,
      amount: int,
      currency: str,
      metadata: Dict[str, str],
      receipt_email: Optional[str] = None,
  ) -> PaymentIntentRecord:
    intent_id = f"pi_{uuid.uuid4().hex[:24]}"
    record = PaymentIntentRecord(
        id=intent_id,
        amount=amount,
        currency=currency,
        status=PaymentIntentStatus.REQUIRES_PAYMENT_METHOD.value,
        client_secret=f"{intent_id}_secret_{uuid.uuid4().hex[:12]}",
        metadata=dict(metadata),
    )
    self.intents[intent_id] = record
    self.created.append({
        "amount": amount,
        "currency": currency,
        "metadata": dict(metadata),
        "receipt_email": receipt_email,
    })
    return record

  async def retrieve_intent(self, payment_intent_id: str) -> PaymentIntentRecord:
    self.retrieve_calls += 1
    # Yield so concurrent callers interleave the way they would on the network.
    await asyncio.sleep(0)
    if self.retrieve_error is not None:
      raise self.retrieve_error
    record = self.intents.get(payment_intent_id)
    if record is None:
      raise InvalidRequestError(
          f"Payment provider rejected request: No such payment_intent:"
          f" '{payment_intent_id}'"
      )
    return record.model_copy(deep=True)

  def add_intent(
      self,
      amount: int,
      metadata: Optional[Dict[str, str]] = None,
      status: str = PaymentIntentStatus.SUCCEEDED.value,
      currency: str = "usd",
  ) -> PaymentIntentRecord:
    """Registers an intent as if a client had created and paid it."""
    intent_id = f"pi_{uuid.uuid4().hex[:24]}"
    record = PaymentIntentRecord(
        id=intent_id,
        amount=amount,
        currency=currency,
        status=status,
        client_secret=f"{intent_id}_secret",
        metadata=dict(metadata or {}),
    )
    self.intents[intent_id] = record
    return record

  def settle(self, payment_intent_id: str) -> None:
    self.intents[payment_intent_id].status = (
        PaymentIntentStatus.SUCCEEDED.value
    )
