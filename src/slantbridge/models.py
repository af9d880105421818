"""Data types shared by the prober, normalizer, client and orchestrator.

Workflow::

    1. probe(url)                 -> RemoteAsset (size, how it was learned)
    2. normalize(options, ...)    -> CanonicalOrderPayload (provider wire shape)
    3. estimate / create order    -> PricingEstimate / OrderConfirmation
"""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field, fields
from typing import Any


class ProbeMethod(enum.Enum):
    """How the size of a remote asset was obtained."""

    HEAD = "head"
    RANGE_FALLBACK = "range_fallback"
    UNKNOWN = "unknown"


class Intent(enum.Enum):
    """Purpose of a provider call; selects order-number prefix and placeholders."""

    ESTIMATE = "estimate"
    ORDER = "order"
    SHIPPING_ESTIMATE = "shipping_estimate"

    @property
    def prefix(self) -> str:
        return _INTENT_PREFIXES[self]


_INTENT_PREFIXES: dict[Intent, str] = {
    Intent.ESTIMATE: "EST",
    Intent.ORDER: "ORDER",
    Intent.SHIPPING_ESTIMATE: "SHIP_EST",
}


class Color(str, enum.Enum):
    """Filament colors accepted by the provider's ``order_item_color`` enum."""

    BLACK = "black"
    WHITE = "white"
    GRAY = "gray"
    YELLOW = "yellow"
    RED = "red"
    GOLD = "gold"
    PURPLE = "purple"
    BLUE = "blue"
    ORANGE = "orange"
    GREEN = "green"
    PINK = "pink"
    MATTE_BLACK = "matteBlack"
    LUNAR_REGOLITH = "lunarRegolith"
    PETG_BLACK = "petgBlack"


class Material(str, enum.Enum):
    """Print profiles accepted by the provider."""

    PLA = "PLA"
    ABS = "ABS"
    PETG = "PETG"
    TPU = "TPU"
    WOOD = "Wood"
    CARBON_FIBER = "Carbon Fiber"


DEFAULT_COLOR = Color.BLACK
DEFAULT_MATERIAL = Material.PLA


@dataclass
class RemoteAsset:
    """A model file hosted somewhere the provider can fetch it from."""

    url: str
    size_bytes: int | None = None
    probe_method: ProbeMethod = ProbeMethod.UNKNOWN

    @property
    def size_known(self) -> bool:
        return self.size_bytes is not None

    @property
    def size_megabytes(self) -> float | None:
        if self.size_bytes is None:
            return None
        return self.size_bytes / (1024 * 1024)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["probe_method"] = self.probe_method.value
        return data


@dataclass(frozen=True)
class PrintOptions:
    """Validated print options."""

    color: Color = DEFAULT_COLOR
    material: Material = DEFAULT_MATERIAL
    quantity: int = 1


@dataclass(frozen=True)
class Address:
    """A postal address block (billing or shipping)."""

    name: str
    street_1: str
    street_2: str = ""
    street_3: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = "US"
    residential: bool = True


@dataclass(frozen=True)
class CustomerRecord:
    """Customer identity plus billing and shipping addresses."""

    name: str
    email: str
    phone: str
    billing: Address
    shipping: Address
    image_url: str = ""


# Python attribute -> provider wire key, where they differ.
_WIRE_NAMES: dict[str, str] = {
    "order_number": "orderNumber",
    "file_url": "fileURL",
    "bill_to_is_us_residential": "bill_to_is_US_residential",
    "ship_to_is_us_residential": "ship_to_is_US_residential",
}


@dataclass(frozen=True)
class CanonicalOrderPayload:
    """One order object in the exact shape the provider requires.

    Built once per request by :func:`slantbridge.normalize.normalize`.
    """

    email: str
    phone: str
    name: str
    order_number: str
    filename: str
    file_url: str
    bill_to_street_1: str
    bill_to_street_2: str
    bill_to_street_3: str
    bill_to_city: str
    bill_to_state: str
    bill_to_zip: str
    bill_to_country_as_iso: str
    bill_to_is_us_residential: str
    ship_to_name: str
    ship_to_street_1: str
    ship_to_street_2: str
    ship_to_street_3: str
    ship_to_city: str
    ship_to_state: str
    ship_to_zip: str
    ship_to_country_as_iso: str
    ship_to_is_us_residential: str
    order_item_name: str
    order_quantity: str
    order_image_url: str
    order_sku: str
    order_item_color: str
    profile: str

    def to_dict(self) -> dict[str, str]:
        return {_WIRE_NAMES.get(f.name, f.name): getattr(self, f.name) for f in fields(self)}


@dataclass
class ShippingMethod:
    """One shipping option offered with a pricing estimate."""

    name: str
    days: int
    cost: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PricingEstimate:
    """Advisory price for printing and shipping a model."""

    subtotal: float
    shipping: float
    total: float
    tax: float = 0.0
    currency: str = "USD"
    estimated_days: int = 4
    shipping_methods: list[ShippingMethod] = field(default_factory=list)
    is_fallback: bool = False

    def pricing_dict(self) -> dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "shipping": self.shipping,
            "tax": self.tax,
            "total": self.total,
            "currency": self.currency,
        }


@dataclass
class ShippingEstimate:
    shipping_cost: float | None
    currency_code: str = "usd"

    def to_dict(self) -> dict[str, Any]:
        return {"shippingCost": self.shipping_cost, "currencyCode": self.currency_code}


@dataclass
class OrderConfirmation:
    """Result of a successfully placed order."""

    order_id: str | None
    order_number: str
    status: str = "created"

    def to_dict(self) -> dict[str, Any]:
        return {"orderId": self.order_id, "orderNumber": self.order_number, "status": self.status}


@dataclass
class ModelUpload:
    """A model URL accepted for later pricing and ordering."""

    model_id: str
    model_url: str
    uploaded_at: str
    status: str = "uploaded"
    accessible: bool = False
    size_bytes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "modelId": self.model_id,
            "modelUrl": self.model_url,
            "uploadedAt": self.uploaded_at,
            "status": self.status,
            "accessible": self.accessible,
            "sizeBytes": self.size_bytes,
        }
