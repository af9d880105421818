"""Entry point for fulfillment requests from the surrounding application.

Sequences the size probe, the size limit, normalization, the provider
call and response shaping for each call kind::

    orch = OrderOrchestrator(load_config())
    orch.estimate_pricing("https://cdn.example.com/m/cat.stl", {"color": "red"})
    orch.create_order(url, options, customer_data)

When the provider fails, pricing substitutes a synthetic estimate and
ordering raises the classified error.  The difference is captured by
:class:`CallPolicy`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from slantbridge.classify import classify, payload_too_large, unsupported_scheme
from slantbridge.client import ProviderClient
from slantbridge.config import ProxyConfig, load_config
from slantbridge.deadline import Deadline
from slantbridge.errors import ClassifiedError, ProviderError, ValidationError
from slantbridge.models import (
    Intent,
    ModelUpload,
    OrderConfirmation,
    PricingEstimate,
    RemoteAsset,
    ShippingEstimate,
    ShippingMethod,
)
from slantbridge.normalize import generate_reference, normalize, normalize_options
from slantbridge.probe import SizeProber

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallPolicy:
    """How a call kind reacts to size limits and provider failures."""

    fallback_on_provider_error: bool = False
    enforce_size_limit: bool = False


PRICING_POLICY = CallPolicy(fallback_on_provider_error=True, enforce_size_limit=False)
ORDER_POLICY = CallPolicy(fallback_on_provider_error=False, enforce_size_limit=True)
PASS_THROUGH_POLICY = CallPolicy()

DEFAULT_ESTIMATED_DAYS = 4
STANDARD_SHIPPING_DAYS = 5

# Substituted when the pricing API is unavailable.
FALLBACK_SUBTOTAL = 15.99
FALLBACK_SHIPPING = 5.99
FALLBACK_TOTAL = 21.98


def fallback_estimate() -> PricingEstimate:
    return PricingEstimate(
        subtotal=FALLBACK_SUBTOTAL,
        shipping=FALLBACK_SHIPPING,
        total=FALLBACK_TOTAL,
        estimated_days=DEFAULT_ESTIMATED_DAYS,
        shipping_methods=[ShippingMethod("Standard", STANDARD_SHIPPING_DAYS, FALLBACK_SHIPPING)],
        is_fallback=True,
    )


def _to_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _first_object(data: Any) -> dict[str, Any] | None:
    """The provider answers some calls with a one-element array."""
    if isinstance(data, list):
        data = data[0] if data else None
    return data if isinstance(data, dict) else None


def parse_estimate(data: Any) -> PricingEstimate:
    """Shape an ``/order/estimate`` response into a :class:`PricingEstimate`.

    Raises:
        ProviderError: If the response carries no usable price.
    """
    body = _first_object(data)
    if body is None:
        raise ProviderError(f"Slant3D returned an unexpected estimate response: {data!r:.300}", code="INVALID_RESPONSE")

    subtotal = _to_float(body.get("printingCost"))
    shipping = _to_float(body.get("shippingCost"))
    total = _to_float(body.get("totalPrice"))
    if subtotal is None and total is None:
        raise ProviderError(f"Slant3D estimate response has no price: {body!r:.300}", code="INVALID_RESPONSE")

    subtotal = subtotal or 0.0
    shipping = shipping or 0.0
    if total is None:
        total = round(subtotal + shipping, 2)
    return PricingEstimate(
        subtotal=subtotal,
        shipping=shipping,
        total=total,
        estimated_days=DEFAULT_ESTIMATED_DAYS,
        shipping_methods=[ShippingMethod("Standard", STANDARD_SHIPPING_DAYS, shipping)],
    )


class OrderOrchestrator:
    """Stateless coordinator for all fulfillment calls.

    Args:
        config: Proxy configuration.  Resolved with :func:`load_config`
            when omitted.
        client: Provider client; built from *config* when omitted.
        prober: Size prober; built from *config* when omitted.
    """

    def __init__(
        self,
        config: ProxyConfig | None = None,
        *,
        client: ProviderClient | None = None,
        prober: SizeProber | None = None,
    ) -> None:
        self._config = config or load_config()
        self._client = client or ProviderClient(self._config)
        self._prober = prober or SizeProber(self._config)

    @property
    def config(self) -> ProxyConfig:
        return self._config

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    @staticmethod
    def validate_model_url(model_url: Any) -> str:
        """Reject missing and non-fetchable model URLs before any network call.

        Raises:
            ValidationError: If the URL is missing or has no host.
            ClassifiedError: ``UNSUPPORTED_SCHEME`` for ``blob:`` and any
                other non-HTTP(S) scheme.
        """
        if not isinstance(model_url, str) or not model_url.strip():
            raise ValidationError("Model URL is required")
        url = model_url.strip()
        lowered = url.lower()
        if not (lowered.startswith("http://") or lowered.startswith("https://")):
            logger.error("Rejected model URL with unsupported scheme: %.200s", url)
            raise unsupported_scheme(url)
        if not urlparse(url).netloc:
            raise ValidationError("Model URL must include a host")
        return url

    @staticmethod
    def _require_order_id(order_id: Any) -> str:
        if order_id is None or not str(order_id).strip():
            raise ValidationError("Order ID is required")
        return str(order_id).strip()

    def _probe(self, url: str, deadline: Deadline | None) -> RemoteAsset:
        asset = self._prober.probe(url, deadline=deadline)
        if asset.size_bytes is not None:
            logger.info(
                "Model file size: %.2fMB (%d bytes, via %s)",
                asset.size_megabytes,
                asset.size_bytes,
                asset.probe_method.value,
            )
        return asset

    def _enforce_size_limit(self, asset: RemoteAsset, policy: CallPolicy) -> None:
        if not policy.enforce_size_limit or asset.size_bytes is None:
            return
        if asset.size_bytes > self._config.max_bytes:
            logger.error(
                "Model file too large: %d bytes (max %d)",
                asset.size_bytes,
                self._config.max_bytes,
            )
            raise payload_too_large(asset.size_bytes, self._config.max_bytes)

    def _classify(self, exc: BaseException) -> ClassifiedError:
        return classify(exc, max_bytes=self._config.max_bytes)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def estimate_pricing(
        self,
        model_url: Any,
        options: Any = None,
        *,
        deadline: Deadline | None = None,
        policy: CallPolicy = PRICING_POLICY,
    ) -> dict[str, Any]:
        """Price a model.  Falls back to a synthetic estimate if the provider fails.

        Returns:
            Dict with ``model_id``, ``pricing``, ``material``, ``quantity``,
            ``estimated_days`` and ``shipping_methods``.

        Raises:
            ValidationError: If *model_url* is missing.
            ClassifiedError: For rejected URLs, or provider failures when
                the policy disables the fallback.
        """
        url = self.validate_model_url(model_url)
        asset = self._probe(url, deadline)
        self._enforce_size_limit(asset, policy)

        print_options = normalize_options(options)
        payload = normalize(options, None, url, Intent.ESTIMATE)

        try:
            estimate = parse_estimate(self._client.estimate(payload, deadline=deadline))
        except ProviderError as exc:
            if not policy.fallback_on_provider_error or exc.code == "DEADLINE_EXCEEDED":
                raise self._classify(exc) from exc
            logger.warning("Slant3D pricing failed, using fallback estimate: %s", exc)
            estimate = fallback_estimate()

        logger.info(
            "Pricing estimate for %s: total %.2f %s%s",
            url,
            estimate.total,
            estimate.currency,
            " (fallback)" if estimate.is_fallback else "",
        )

        return {
            "model_id": generate_reference("estimate"),
            "pricing": estimate.pricing_dict(),
            "material": print_options.material.value,
            "quantity": print_options.quantity,
            "estimated_days": estimate.estimated_days,
            "shipping_methods": [m.to_dict() for m in estimate.shipping_methods],
        }

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        model_url: Any,
        options: Any = None,
        customer_data: Any = None,
        *,
        deadline: Deadline | None = None,
        policy: CallPolicy = ORDER_POLICY,
    ) -> dict[str, Any]:
        """Place a real order with the provider.

        The provider call is made exactly once; it is never retried and a
        failure is never replaced by a synthetic result.

        Returns:
            Dict with ``orderId``, ``orderNumber`` and ``status``.

        Raises:
            ValidationError: If *model_url* is missing.
            ClassifiedError: For rejected URLs, oversize assets
                (``PAYLOAD_TOO_LARGE``), and every provider failure.
        """
        url = self.validate_model_url(model_url)
        asset = self._probe(url, deadline)
        self._enforce_size_limit(asset, policy)

        payload = normalize(options, customer_data, url, Intent.ORDER)
        logger.info("Placing Slant3D order %s for %s", payload.order_number, payload.filename)

        try:
            result = self._client.create_order(payload, deadline=deadline)
        except ProviderError as exc:
            logger.error("Slant3D order %s failed: %s", payload.order_number, exc)
            raise self._classify(exc) from exc

        body = _first_object(result) or {}
        order_id = body.get("orderId")
        if order_id is None:
            logger.warning("Slant3D accepted order %s without returning an orderId", payload.order_number)
        confirmation = OrderConfirmation(
            order_id=str(order_id) if order_id is not None else None,
            order_number=payload.order_number,
        )
        return confirmation.to_dict()

    # ------------------------------------------------------------------
    # Pass-through calls
    # ------------------------------------------------------------------

    def estimate_shipping(
        self,
        model_url: Any,
        options: Any = None,
        customer_data: Any = None,
        *,
        deadline: Deadline | None = None,
    ) -> dict[str, Any]:
        """Shipping cost for a model sent to *customer_data*'s address.

        Returns:
            Dict with ``shippingCost`` and ``currencyCode``.
        """
        url = self.validate_model_url(model_url)
        payload = normalize(options, customer_data, url, Intent.SHIPPING_ESTIMATE)
        try:
            result = self._client.estimate_shipping(payload, deadline=deadline)
        except ProviderError as exc:
            raise self._classify(exc) from exc

        body = _first_object(result) or {}
        estimate = ShippingEstimate(
            shipping_cost=_to_float(body.get("shippingCost")),
            currency_code=str(body.get("currencyCode") or "usd"),
        )
        return estimate.to_dict()

    def get_tracking(self, order_id: Any, *, deadline: Deadline | None = None) -> Any:
        """Return the provider's tracking payload for *order_id* unchanged."""
        safe_id = self._require_order_id(order_id)
        try:
            return self._client.get_tracking(safe_id, deadline=deadline)
        except ProviderError as exc:
            raise self._classify(exc) from exc

    def list_orders(self, *, deadline: Deadline | None = None) -> Any:
        """Return the provider's order list unchanged."""
        try:
            return self._client.list_orders(deadline=deadline)
        except ProviderError as exc:
            raise self._classify(exc) from exc

    def cancel_order(self, order_id: Any, *, deadline: Deadline | None = None) -> Any:
        """Cancel *order_id* and return the provider's result unchanged."""
        safe_id = self._require_order_id(order_id)
        logger.info("Cancelling Slant3D order %s", safe_id)
        try:
            return self._client.cancel_order(safe_id, deadline=deadline)
        except ProviderError as exc:
            raise self._classify(exc) from exc

    # ------------------------------------------------------------------
    # Model registration
    # ------------------------------------------------------------------

    def register_model(self, model_url: Any, *, deadline: Deadline | None = None) -> dict[str, Any]:
        """Accept a model URL for later pricing and ordering.

        The URL is validated like an order URL and probed for
        reachability.  An unreachable asset is logged, not rejected.
        """
        url = self.validate_model_url(model_url)
        asset = self._probe(url, deadline)
        if not asset.size_known:
            logger.warning("Continuing with model registration despite failed probe of %s", url)
        upload = ModelUpload(
            model_id=generate_reference("model"),
            model_url=url,
            uploaded_at=datetime.now(timezone.utc).isoformat(),
            accessible=asset.size_known,
            size_bytes=asset.size_bytes,
        )
        return upload.to_dict()

    def __repr__(self) -> str:
        return f"<OrderOrchestrator {self._config!r}>"


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_orchestrator: OrderOrchestrator | None = None
_orch_lock = threading.Lock()


def get_orchestrator() -> OrderOrchestrator:
    """Return the process-wide orchestrator, built from the environment on first use."""
    global _orchestrator
    if _orchestrator is not None:
        return _orchestrator

    with _orch_lock:
        if _orchestrator is None:
            _orchestrator = OrderOrchestrator(load_config())
        return _orchestrator
