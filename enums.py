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

"""Enumerations for the storefront fulfillment service.

This module defines the standard enums used throughout the service to
represent order state, payment state as reported by the provider, and the
webhook event types the service reacts to.
"""

import enum


class OrderStatus(str, enum.Enum):
  PROCESSING = "Processing"
  SHIPPED = "Shipped"
  DELIVERED = "Delivered"
  CANCELLED = "Cancelled"


class PaymentIntentStatus(str, enum.Enum):
  REQUIRES_PAYMENT_METHOD = "requires_payment_method"
  REQUIRES_CONFIRMATION = "requires_confirmation"
  REQUIRES_ACTION = "requires_action"
  PROCESSING = "processing"
  REQUIRES_CAPTURE = "requires_capture"
  CANCELED = "canceled"
  SUCCEEDED = "succeeded"


class OrderPaymentStatus(str, enum.Enum):
  SUCCEEDED = "succeeded"
  REFUNDED = "refunded"


class WebhookEventType(str, enum.Enum):
  PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
  PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
  CHARGE_REFUNDED = "charge.refunded"


class WebhookOutcome(str, enum.Enum):
  PROCESSED = "processed"
  FAILED = "failed"
  IGNORED = "ignored"


class Role(str, enum.Enum):
  USER = "user"
  ADMIN = "admin"
