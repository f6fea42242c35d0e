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

"""Shipping address normalization and validation.

Clients have sent shipping data in several shapes over time: the canonical
flat shape, an address nested under `shippingAddress` (or similar) using
`street`/`zip` names, and flat payloads with legacy aliases. Handling is split
in two stages:

- `normalize_shipping_info` is permissive. It maps any of these shapes onto
  the canonical keys and never raises.
- `validate_shipping_info` is strict. It checks required fields and the
  country allow-list and returns a `ShippingInfo`.
"""

from collections.abc import Mapping
from typing import Any, Dict, Optional

import countries
from exceptions import InvalidShippingError
from models import ShippingInfo

# Keys under which an address may be nested, in order of preference.
_NESTED_KEYS = ("shippingAddress", "shipping_address", "shippingInfo", "address")

_ADDRESS_KEYS = ("address", "street", "streetAddress", "line1")
_POSTAL_CODE_KEYS = ("postalCode", "postal_code", "zip", "zipCode")
_PHONE_KEYS = ("phoneNumber", "phone_number", "phone")

# Required fields, in the order they are checked.
_REQUIRED_FIELDS = ("address", "city", "state", "postalCode")


def _first(payload: Mapping, keys) -> Optional[str]:
  for key in keys:
    value = payload.get(key)
    if value is None or isinstance(value, Mapping):
      continue
    value = str(value).strip()
    if value:
      return value
  return None


def _nested_address(payload: Mapping) -> Optional[Mapping]:
  for key in _NESTED_KEYS:
    value = payload.get(key)
    if isinstance(value, Mapping):
      return value
  return None


def normalize_shipping_info(payload: Any) -> Optional[Dict[str, Any]]:
  """Maps a shipping payload of any tolerated shape onto the canonical keys.

  Args:
    payload: The raw shipping payload, or None.

  Returns:
    A dict with the keys `address`, `city`, `state`, `postalCode`, `country`,
    `phoneNumber` and `name` (missing values are None), or None if the payload
    itself was None.
  """
  if payload is None:
    return None
  if not isinstance(payload, Mapping):
    payload = {}

  nested = _nested_address(payload)
  # Fields found on the nested address win; contact details usually sit on
  # the outer object.
  sources = (nested, payload) if nested is not None else (payload,)

  def pick(keys) -> Optional[str]:
    for source in sources:
      value = _first(source, keys)
      if value is not None:
        return value
    return None

  country = pick(("country", "countryCode", "country_code"))
  return {
      "address": pick(_ADDRESS_KEYS),
      "city": pick(("city",)),
      "state": pick(("state", "region")),
      "postalCode": pick(_POSTAL_CODE_KEYS),
      "country": country.upper() if country else None,
      "phoneNumber": pick(_PHONE_KEYS),
      "name": pick(("name", "fullName")),
  }


def validate_shipping_info(payload: Any) -> ShippingInfo:
  """Validates a (possibly not yet normalized) shipping payload.

  Args:
    payload: Shipping data in any tolerated shape.

  Returns:
    The canonical ShippingInfo.

  Raises:
    InvalidShippingError: Naming the first missing or invalid field.
  """
  normalized = normalize_shipping_info(payload)
  if normalized is None:
    raise InvalidShippingError("address")

  for field in _REQUIRED_FIELDS:
    if not normalized.get(field):
      raise InvalidShippingError(field)

  country = normalized.get("country")
  if not country:
    raise InvalidShippingError("country")
  if not countries.is_allowed_country(country):
    raise InvalidShippingError(
        "country", f"Invalid country code: {country}"
    )

  return ShippingInfo.model_validate(normalized)
