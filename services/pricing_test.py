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

"""Tests for the tax and shipping policy."""

from absl.testing import absltest
from services import pricing


class PricingTest(absltest.TestCase):

  def test_flat_tax_rounds_half_up(self):
    breakdown = pricing.price(9250)
    self.assertEqual(breakdown.subtotal, 9250)
    self.assertEqual(breakdown.tax, 648)
    self.assertEqual(breakdown.shipping, 0)
    self.assertEqual(breakdown.total, 9898)

  def test_price_depends_only_on_subtotal(self):
    at_intent_time = pricing.price(10000)
    at_order_time = pricing.price(10000)
    self.assertEqual(at_intent_time, at_order_time)
    self.assertEqual(at_intent_time.tax, 700)
    self.assertEqual(at_intent_time.total, 10700)

  def test_rounds_down_below_half_cent(self):
    # 0.07 * 1 cent = 0.07 cents
    self.assertEqual(pricing.price(1).tax, 0)
    # 0.07 * 7 cents = 0.49 cents; 0.07 * 8 cents = 0.56 cents
    self.assertEqual(pricing.price(7).tax, 0)
    self.assertEqual(pricing.price(8).tax, 1)

  def test_empty_subtotal(self):
    self.assertEqual(pricing.price(0), pricing.PriceBreakdown(0, 0, 0, 0))

  def test_negative_subtotal_rejected(self):
    with self.assertRaises(ValueError):
      pricing.price(-1)


if __name__ == "__main__":
  absltest.main()
