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

"""Tests for shipping normalization and validation."""

from absl.testing import absltest
from exceptions import InvalidShippingError
from services import shipping


class NormalizeShippingInfoTest(absltest.TestCase):

  def test_none_stays_none(self):
    self.assertIsNone(shipping.normalize_shipping_info(None))

  def test_nested_legacy_shape(self):
    normalized = shipping.normalize_shipping_info({
        "shippingAddress": {
            "street": "1 Main St",
            "city": "X",
            "state": "Y",
            "zip": "10001",
            "country": "US",
        }
    })
    self.assertEqual(
        normalized,
        {
            "address": "1 Main St",
            "city": "X",
            "state": "Y",
            "postalCode": "10001",
            "country": "US",
            "phoneNumber": None,
            "name": None,
        },
    )

  def test_nested_address_keeps_outer_contact_details(self):
    normalized = shipping.normalize_shipping_info({
        "name": "Alice",
        "phone": "555-0100",
        "address": {
            "street": "1 Main St",
            "city": "X",
            "state": "Y",
            "postalCode": "10001",
            "country": "us",
        },
    })
    self.assertEqual(normalized["address"], "1 Main St")
    self.assertEqual(normalized["postalCode"], "10001")
    self.assertEqual(normalized["country"], "US")
    self.assertEqual(normalized["phoneNumber"], "555-0100")
    self.assertEqual(normalized["name"], "Alice")

  def test_canonical_shape_passes_through(self):
    payload = {
        "address": "9 Elm Rd",
        "city": "Austin",
        "state": "TX",
        "postalCode": "73301",
        "country": "US",
        "phoneNumber": "555-0199",
        "name": "Bob",
    }
    self.assertEqual(shipping.normalize_shipping_info(payload), payload)

  def test_legacy_flat_aliases(self):
    normalized = shipping.normalize_shipping_info({
        "street": " 9 Elm Rd ",
        "city": "Austin",
        "state": "TX",
        "zip": 73301,
        "country": "US",
        "phone": "555-0199",
    })
    self.assertEqual(normalized["address"], "9 Elm Rd")
    self.assertEqual(normalized["postalCode"], "73301")
    self.assertEqual(normalized["phoneNumber"], "555-0199")

  def test_unknown_shape_does_not_raise(self):
    normalized = shipping.normalize_shipping_info("1 Main St, Springfield")
    self.assertEqual(set(normalized.values()), {None})


class ValidateShippingInfoTest(absltest.TestCase):

  def _valid(self, **overrides):
    payload = {
        "address": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "postalCode": "62701",
        "country": "US",
    }
    payload.update(overrides)
    return payload

  def test_valid_payload(self):
    info = shipping.validate_shipping_info(self._valid())
    self.assertEqual(info.address, "1 Main St")
    self.assertEqual(info.postal_code, "62701")
    self.assertEqual(info.country, "US")

  def test_missing_city_is_named(self):
    payload = self._valid()
    del payload["city"]
    with self.assertRaises(InvalidShippingError) as cm:
      shipping.validate_shipping_info(payload)
    self.assertEqual(cm.exception.field, "city")
    self.assertIn("city", cm.exception.message)

  def test_first_missing_field_is_reported(self):
    with self.assertRaises(InvalidShippingError) as cm:
      shipping.validate_shipping_info({"country": "US"})
    self.assertEqual(cm.exception.field, "address")

  def test_blank_postal_code_is_missing(self):
    with self.assertRaises(InvalidShippingError) as cm:
      shipping.validate_shipping_info(self._valid(postalCode="  "))
    self.assertEqual(cm.exception.field, "postalCode")

  def test_country_outside_allow_list(self):
    with self.assertRaises(InvalidShippingError) as cm:
      shipping.validate_shipping_info(self._valid(country="ZZ"))
    self.assertEqual(cm.exception.field, "country")
    self.assertIn("ZZ", cm.exception.message)

  def test_missing_country(self):
    payload = self._valid()
    del payload["country"]
    with self.assertRaises(InvalidShippingError) as cm:
      shipping.validate_shipping_info(payload)
    self.assertEqual(cm.exception.field, "country")

  def test_none_is_rejected(self):
    with self.assertRaises(InvalidShippingError):
      shipping.validate_shipping_info(None)

  def test_nested_shape_validates(self):
    info = shipping.validate_shipping_info({
        "shippingAddress": {
            "street": "1 Main St",
            "city": "X",
            "state": "Y",
            "zip": "10001",
            "country": "US",
        }
    })
    self.assertEqual(info.postal_code, "10001")


if __name__ == "__main__":
  absltest.main()
