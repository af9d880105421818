"""Normalization of loosely-typed caller input into the provider's order shape.

:func:`normalize` is total: it never raises.  Unknown colors fall back to
``black``, unknown materials to ``PLA``, missing customer fields to the
placeholder set for the call's :class:`~slantbridge.models.Intent`, so a
valid order object can be built even from an empty input (anonymous
pricing estimates rely on this).
"""

from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from collections.abc import Mapping
from typing import Any
from urllib.parse import unquote, urlparse

from slantbridge.models import (
    DEFAULT_COLOR,
    DEFAULT_MATERIAL,
    Address,
    CanonicalOrderPayload,
    Color,
    CustomerRecord,
    Intent,
    Material,
    PrintOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "model.stl"

_COLOR_LOOKUP: dict[str, Color] = {c.value.lower(): c for c in Color}
_COLOR_LOOKUP["grey"] = Color.GRAY

_MATERIAL_LOOKUP: dict[str, Material] = {m.value.upper(): m for m in Material}

# Placeholder identities per call purpose; the provider rejects orders with
# empty contact or address fields.
_PLACEHOLDERS: dict[Intent, dict[str, str]] = {
    Intent.ESTIMATE: {
        "name": "Pricing Estimate",
        "email": "pricing@estimate.com",
        "street": "123 Estimate Street",
        "city": "Estimate City",
    },
    Intent.SHIPPING_ESTIMATE: {
        "name": "Shipping Estimate",
        "email": "shipping@estimate.com",
        "street": "123 Estimate Street",
        "city": "Estimate City",
    },
    Intent.ORDER: {
        "name": "Guest User",
        "email": "guest@temp.com",
        "street": "123 Temp Street",
        "city": "Temp City",
    },
}
_PLACEHOLDER_PHONE = "000-000-0000"
_PLACEHOLDER_STATE = "CA"
_PLACEHOLDER_ZIP = "12345"
_PLACEHOLDER_COUNTRY = "US"


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------


def normalize_color(value: Any) -> Color:
    """Map *value* onto :class:`Color`, case-insensitively; default ``black``."""
    if isinstance(value, Color):
        return value
    if not isinstance(value, str):
        return DEFAULT_COLOR
    return _COLOR_LOOKUP.get(value.strip().lower(), DEFAULT_COLOR)


def normalize_material(value: Any) -> Material:
    """Map *value* onto :class:`Material`, case-insensitively; default ``PLA``."""
    if isinstance(value, Material):
        return value
    if not isinstance(value, str):
        return DEFAULT_MATERIAL
    return _MATERIAL_LOOKUP.get(" ".join(value.split()).upper(), DEFAULT_MATERIAL)


def normalize_quantity(value: Any) -> int:
    """Return a positive integer quantity; 1 when absent or non-numeric."""
    if isinstance(value, bool) or value is None:
        return 1
    try:
        quantity = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 1
    return quantity if quantity >= 1 else 1


def generate_reference(prefix: str) -> str:
    """Return ``<prefix>_<timestamp_ms>_<random-suffix>``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def filename_from_url(url: str) -> str:
    """Last path segment of *url*, or :data:`DEFAULT_FILENAME`."""
    try:
        path = urlparse(url).path
    except ValueError:
        return DEFAULT_FILENAME
    segment = unquote(path.rsplit("/", 1)[-1]) if path else ""
    return segment or DEFAULT_FILENAME


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return raw
    if dataclasses.is_dataclass(raw) and not isinstance(raw, type):
        return dataclasses.asdict(raw)
    logger.debug("Ignoring non-mapping input of type %s", type(raw).__name__)
    return {}


def _text(data: Mapping[str, Any], *keys: str, default: str = "") -> str:
    """First non-empty value among *keys*, stringified and stripped."""
    for key in keys:
        value = data.get(key)
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            return text
    return default


def _flag(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip():
        return value.strip().lower() not in ("false", "0", "no", "off")
    return default


def _wire_bool(value: bool) -> str:
    return "true" if value else "false"


# ---------------------------------------------------------------------------
# Composite normalization
# ---------------------------------------------------------------------------


def normalize_options(raw_options: Any) -> PrintOptions:
    """Build :class:`PrintOptions` from a dict, dataclass, or ``None``."""
    if isinstance(raw_options, PrintOptions):
        return raw_options
    data = _as_mapping(raw_options)
    return PrintOptions(
        color=normalize_color(data.get("color")),
        material=normalize_material(data.get("material")),
        quantity=normalize_quantity(data.get("quantity")),
    )


def _address(data: Mapping[str, Any], fallback: Address) -> Address:
    return Address(
        name=_text(data, "name", default=fallback.name),
        street_1=_text(data, "address", "street", "street_1", "address1", default=fallback.street_1),
        street_2=_text(data, "address2", "street_2", "street2", default=fallback.street_2),
        street_3=_text(data, "address3", "street_3", "street3", default=fallback.street_3),
        city=_text(data, "city", default=fallback.city),
        state=_text(data, "state", default=fallback.state),
        zip=_text(data, "zip", "postal_code", "postalCode", default=fallback.zip),
        country=_text(data, "country", "country_code", "countryCode", default=fallback.country),
        residential=_flag(data.get("residential", data.get("is_residential")), fallback.residential),
    )


def sanitize_customer(raw_customer: Any, intent: Intent = Intent.ORDER) -> CustomerRecord:
    """Fill every missing customer field with the placeholder for *intent*."""
    if isinstance(raw_customer, CustomerRecord):
        return raw_customer
    data = _as_mapping(raw_customer)
    placeholders = _PLACEHOLDERS[intent]

    defaults = Address(
        name=placeholders["name"],
        street_1=placeholders["street"],
        city=placeholders["city"],
        state=_PLACEHOLDER_STATE,
        zip=_PLACEHOLDER_ZIP,
        country=_PLACEHOLDER_COUNTRY,
    )
    billing = _address(data, defaults)

    shipping_raw = _as_mapping(data.get("shipping") or data.get("shippingAddress"))
    if not shipping_raw:
        # Flat form: ship_name, ship_address, ship_city, ...
        shipping_raw = {k[len("ship_"):]: v for k, v in data.items() if isinstance(k, str) and k.startswith("ship_")}
    shipping = _address(shipping_raw, billing) if shipping_raw else billing

    return CustomerRecord(
        name=billing.name,
        email=_text(data, "email", default=placeholders["email"]),
        phone=_text(data, "phone", default=_PLACEHOLDER_PHONE),
        billing=billing,
        shipping=shipping,
        image_url=_text(data, "imageUrl", "image_url", "previewImageUrl"),
    )


def normalize(
    raw_options: Any,
    raw_customer: Any,
    asset_url: str,
    intent: Intent,
) -> CanonicalOrderPayload:
    """Build the provider's canonical order object for one request.

    Args:
        raw_options: Print options (``color``, ``material``, ``quantity``,
            and optionally a caller-supplied ``orderNumber`` / ``sku``).
        raw_customer: Customer data; may be empty or ``None``.
        asset_url: Public URL of the model file.
        intent: Purpose of the call; selects reference prefix and
            placeholder identity.
    """
    options_data = _as_mapping(raw_options)
    options = normalize_options(raw_options)
    customer = sanitize_customer(raw_customer, intent)
    filename = filename_from_url(asset_url)

    order_number = _text(options_data, "orderNumber", "order_number") or generate_reference(intent.prefix)
    sku = _text(options_data, "sku", "order_sku") or generate_reference(intent.prefix)

    billing, shipping = customer.billing, customer.shipping
    return CanonicalOrderPayload(
        email=customer.email,
        phone=customer.phone,
        name=customer.name,
        order_number=order_number,
        filename=filename,
        file_url=asset_url,
        bill_to_street_1=billing.street_1,
        bill_to_street_2=billing.street_2,
        bill_to_street_3=billing.street_3,
        bill_to_city=billing.city,
        bill_to_state=billing.state,
        bill_to_zip=billing.zip,
        bill_to_country_as_iso=billing.country,
        bill_to_is_us_residential=_wire_bool(billing.residential),
        ship_to_name=shipping.name,
        ship_to_street_1=shipping.street_1,
        ship_to_street_2=shipping.street_2,
        ship_to_street_3=shipping.street_3,
        ship_to_city=shipping.city,
        ship_to_state=shipping.state,
        ship_to_zip=shipping.zip,
        ship_to_country_as_iso=shipping.country,
        ship_to_is_us_residential=_wire_bool(shipping.residential),
        order_item_name=filename,
        order_quantity=str(options.quantity),
        order_image_url=customer.image_url,
        order_sku=sku,
        order_item_color=options.color.value,
        profile=options.material.value,
    )
