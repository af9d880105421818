"""Output formatting for the slantbridge CLI.

Provides both JSON (machine-parseable) and human-readable (Rich) output
for all CLI responses.
"""

from __future__ import annotations

import json
import math
from io import StringIO
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_bytes(size_bytes: int | float | None) -> str:
    """Convert a byte count to a human-readable string (e.g. '1.2 MB')."""
    if size_bytes is None or size_bytes < 0:
        return "N/A"
    if size_bytes == 0:
        return "0 B"
    units = ("B", "KB", "MB", "GB", "TB")
    exponent = min(int(math.log(size_bytes, 1024)), len(units) - 1)
    value = size_bytes / (1024**exponent)
    if exponent == 0:
        return f"{int(value)} B"
    return f"{value:.1f} {units[exponent]}"


def format_money(amount: float | None, currency: str = "USD") -> str:
    """Format an amount like '$21.98' (USD) or '21.98 EUR'."""
    if amount is None:
        return "N/A"
    if currency.upper() == "USD":
        return f"${amount:,.2f}"
    return f"{amount:,.2f} {currency.upper()}"


def _render_to_string(renderable: Any) -> str:
    """Render a Rich object to a plain string (with ANSI codes)."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=100)
    console.print(renderable)
    return buf.getvalue().rstrip("\n")


def _json_envelope(status: str, data: Any, error: dict[str, Any] | None) -> str:
    return json.dumps({"status": status, "data": data, "error": error}, indent=2, default=str)


# ---------------------------------------------------------------------------
# format_response
# ---------------------------------------------------------------------------


def format_response(
    status: str,
    data: Any = None,
    error: dict[str, Any] | None = None,
    json_mode: bool = False,
) -> str:
    """Build a generic response envelope.

    Parameters
    ----------
    status:
        ``"success"`` or ``"error"``.
    data:
        Arbitrary payload (used when *status* is ``"success"``).
    error:
        Error detail dict with keys ``code`` and ``message``.
    json_mode:
        When *True* return a JSON string; otherwise a Rich-formatted string.
    """
    if json_mode:
        return _json_envelope(status, data, error)

    if status == "error" and error:
        code = error.get("code", "UNKNOWN")
        message = error.get("message", "An unknown error occurred.")
        text = Text()
        text.append("Error", style="bold red")
        text.append(f" [{code}]: ", style="red")
        text.append(message)
        return _render_to_string(Panel(text, title="Error", border_style="red"))

    if isinstance(data, dict) and data:
        lines = [f"[bold]{key}:[/bold] {value}" for key, value in data.items()]
        return _render_to_string(Panel("\n".join(lines), title="Response", border_style="green"))

    if isinstance(data, list):
        return _render_to_string(Panel(json.dumps(data, indent=2, default=str), title="Response", border_style="green"))

    return f"Status: {status}"


# ---------------------------------------------------------------------------
# Command-specific formatters
# ---------------------------------------------------------------------------


def format_probe(asset: dict[str, Any], max_bytes: int, json_mode: bool = False) -> str:
    """Format the result of a size probe against the order size limit."""
    size = asset.get("size_bytes")
    within_limit = None if size is None else size <= max_bytes
    if json_mode:
        return _json_envelope("success", {**asset, "max_bytes": max_bytes, "within_limit": within_limit}, None)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("URL", asset.get("url", ""))
    table.add_row("Size", format_bytes(size))
    table.add_row("Method", asset.get("probe_method", "unknown"))
    table.add_row("Limit", format_bytes(max_bytes))
    if within_limit is None:
        table.add_row("Orderable", "[yellow]unknown (size not reported)[/yellow]")
    elif within_limit:
        table.add_row("Orderable", "[green]yes[/green]")
    else:
        table.add_row("Orderable", "[red]no, file too large[/red]")
    return _render_to_string(Panel(table, title="Model File", border_style="blue"))


def format_quote(result: dict[str, Any], json_mode: bool = False) -> str:
    """Format a pricing estimate."""
    if json_mode:
        return _json_envelope("success", result, None)

    pricing = result.get("pricing", {})
    currency = pricing.get("currency", "USD")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("Material", str(result.get("material", "")))
    table.add_row("Quantity", str(result.get("quantity", "")))
    table.add_row("Printing", format_money(pricing.get("subtotal"), currency))
    table.add_row("Shipping", format_money(pricing.get("shipping"), currency))
    table.add_row("Total", f"[bold]{format_money(pricing.get('total'), currency)}[/bold]")
    table.add_row("Estimated days", str(result.get("estimated_days", "")))
    return _render_to_string(Panel(table, title="Price Estimate", border_style="green"))


def format_order(result: dict[str, Any], json_mode: bool = False) -> str:
    """Format an order confirmation."""
    if json_mode:
        return _json_envelope("success", result, None)

    text = Text()
    text.append("Order placed", style="bold green")
    text.append(f"\nOrder ID:     {result.get('orderId') or 'N/A'}")
    text.append(f"\nOrder number: {result.get('orderNumber', '')}")
    text.append(f"\nStatus:       {result.get('status', '')}")
    return _render_to_string(Panel(text, title="Order", border_style="green"))


def format_shipping(result: dict[str, Any], json_mode: bool = False) -> str:
    """Format a shipping estimate."""
    if json_mode:
        return _json_envelope("success", result, None)
    cost = format_money(result.get("shippingCost"), str(result.get("currencyCode") or "usd"))
    return _render_to_string(Panel(f"[bold]Shipping:[/bold] {cost}", title="Shipping Estimate", border_style="green"))


def format_order_list(orders: Any, json_mode: bool = False) -> str:
    """Format the provider's order list.

    The provider's list shape is not fixed, so rows are built from
    whichever of the known keys each entry carries.
    """
    if json_mode:
        return _json_envelope("success", orders, None)

    entries = orders
    if isinstance(orders, dict):
        entries = orders.get("orders") or orders.get("data") or []
    if not isinstance(entries, list) or not entries:
        return "No orders found."

    table = Table(title="Orders", border_style="blue")
    table.add_column("Order ID", style="bold")
    table.add_column("Order Number")
    table.add_column("Status")
    for entry in entries:
        if not isinstance(entry, dict):
            table.add_row(str(entry), "", "")
            continue
        table.add_row(
            str(entry.get("orderId") or entry.get("id") or ""),
            str(entry.get("orderNumber") or entry.get("order_number") or ""),
            str(entry.get("status") or ""),
        )
    return _render_to_string(table)
