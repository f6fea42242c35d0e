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

"""Tax and shipping policy.

Every amount the service charges or records is derived from `price`, called
with a cart's stored subtotal. The intent amount sent to the payment provider
and the totals written on the order come from the same function, so a policy
change here applies to both at once.
"""

import dataclasses
import decimal

TAX_RATE = decimal.Decimal("0.07")
SHIPPING_FLAT_CENTS = 0


@dataclasses.dataclass(frozen=True)
class PriceBreakdown:
  """Amounts in cents."""

  subtotal: int
  tax: int
  shipping: int
  total: int


def price(subtotal: int) -> PriceBreakdown:
  """Computes tax, shipping and total for a subtotal.

  Args:
    subtotal: The cart subtotal in cents.

  Returns:
    The PriceBreakdown; tax is rounded half-up to the nearest cent.

  Raises:
    ValueError: If the subtotal is negative.
  """
  if subtotal < 0:
    raise ValueError(f"Subtotal must not be negative: {subtotal}")

  tax = int(
      (decimal.Decimal(subtotal) * TAX_RATE).quantize(
          decimal.Decimal("1"), rounding=decimal.ROUND_HALF_UP
      )
  )
  shipping = SHIPPING_FLAT_CENTS
  return PriceBreakdown(
      subtotal=subtotal,
      tax=tax,
      shipping=shipping,
      total=subtotal + tax + shipping,
  )
