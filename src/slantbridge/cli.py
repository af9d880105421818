"""slantbridge CLI - script-friendly command-line interface to the order proxy.

Usage:
    slantbridge probe <model_url> [--json]
    slantbridge quote <model_url> [--color C] [--material M] [--quantity N] [--json]
    slantbridge order <model_url> --confirm [print options] [customer options] [--json]
    slantbridge shipping <model_url> [print options] [customer options] [--json]
    slantbridge track <order_id> [--json]
    slantbridge orders [--json]
    slantbridge cancel <order_id> --confirm [--json]
    slantbridge serve [--host H] [--port P]
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any

import click

from slantbridge.config import load_config, validate_config
from slantbridge.errors import SlantBridgeError
from slantbridge.exit_codes import CONFIG_ERROR, OTHER_ERROR, SUCCESS, exit_code_for, exit_code_for_error
from slantbridge.orchestrator import OrderOrchestrator
from slantbridge.output import (
    format_order,
    format_order_list,
    format_probe,
    format_quote,
    format_response,
    format_shipping,
)
from slantbridge.probe import SizeProber

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _emit(output: str, exit_code: int = SUCCESS) -> None:
    """Print output and exit with the given code."""
    click.echo(output)
    sys.exit(exit_code)


def _emit_error(
    code: str,
    message: str,
    json_mode: bool,
    exit_code: int | None = None,
) -> None:
    """Emit a structured error and exit."""
    if exit_code is None:
        exit_code = exit_code_for(code)
    output = format_response(
        "error",
        error={"code": code, "message": message},
        json_mode=json_mode,
    )
    _emit(output, exit_code)


def _make_orchestrator(ctx: click.Context, json_mode: bool, *, require_key: bool = True) -> OrderOrchestrator:
    """Build an orchestrator from the group options, validating config first."""
    config = load_config(
        api_base=ctx.obj.get("api_base"),
        api_key=ctx.obj.get("api_key"),
        config_path=ctx.obj.get("config_path"),
    )
    if require_key:
        valid, err = validate_config(config)
        if not valid:
            _emit_error("CONFIG_ERROR", f"Configuration error: {err}", json_mode, CONFIG_ERROR)
    return OrderOrchestrator(config)


def _call(json_mode: bool, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run an orchestrator call, emitting a structured error on failure."""
    try:
        return fn(*args, **kwargs)
    except SlantBridgeError as exc:
        _emit_error(exc.code or "UNKNOWN", str(exc), json_mode, exit_code_for_error(exc))


def _print_options(color: str | None, material: str | None, quantity: int | None) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if color:
        options["color"] = color
    if material:
        options["material"] = material
    if quantity is not None:
        options["quantity"] = quantity
    return options


def _customer_data(**fields: str | None) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value}


def print_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the shared ``--color/--material/--quantity`` options."""
    fn = click.option("--quantity", type=int, default=None, help="Number of copies (default 1).")(fn)
    fn = click.option("--material", default=None, help="Print material (PLA, PETG, ...).")(fn)
    fn = click.option("--color", default=None, help="Filament color (black, white, ...).")(fn)
    return fn


def customer_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the shared customer and address options."""
    for name, help_text in reversed(
        [
            ("name", "Customer name."),
            ("email", "Customer email."),
            ("phone", "Customer phone."),
            ("address", "Street address."),
            ("address2", "Second address line."),
            ("city", "City."),
            ("state", "State or province."),
            ("zip", "Postal code."),
            ("country", "ISO country code (default US)."),
        ]
    ):
        fn = click.option(f"--{name}", name, default=None, help=help_text)(fn)
    return fn


# ------------------------------------------------------------------
# CLI group
# ------------------------------------------------------------------


@click.group()
@click.option("--api-key", envvar="SLANT3D_API_KEY", default=None, help="Slant3D API key.")
@click.option("--api-base", envvar="SLANT3D_API_BASE", default=None, help="Slant3D API base URL.")
@click.option(
    "--config",
    "config_path",
    envvar="SLANTBRIDGE_CONFIG",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to a YAML config file.",
)
@click.version_option(package_name="slantbridge")
@click.pass_context
def cli(ctx: click.Context, api_key: str | None, api_base: str | None, config_path: str | None) -> None:
    """Fulfillment order proxy for the Slant3D print-on-demand API."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["api_base"] = api_base
    ctx.obj["config_path"] = config_path


# ------------------------------------------------------------------
# probe
# ------------------------------------------------------------------


@cli.command()
@click.argument("model_url")
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output as JSON.")
@click.pass_context
def probe(ctx: click.Context, model_url: str, json_mode: bool) -> None:
    """Check a model file's size against the order limit.

    Needs no API key: only the model host is contacted.
    """
    orch = _make_orchestrator(ctx, json_mode, require_key=False)
    url = _call(json_mode, orch.validate_model_url, model_url)
    asset = SizeProber(orch.config).probe(url)
    _emit(format_probe(asset.to_dict(), orch.config.max_bytes, json_mode=json_mode), SUCCESS)


# ------------------------------------------------------------------
# quote
# ------------------------------------------------------------------


@cli.command()
@click.argument("model_url")
@print_options
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output as JSON.")
@click.pass_context
def quote(
    ctx: click.Context,
    model_url: str,
    color: str | None,
    material: str | None,
    quantity: int | None,
    json_mode: bool,
) -> None:
    """Get a price estimate for printing a model."""
    orch = _make_orchestrator(ctx, json_mode)
    result = _call(json_mode, orch.estimate_pricing, model_url, _print_options(color, material, quantity))
    _emit(format_quote(result, json_mode=json_mode), SUCCESS)


# ------------------------------------------------------------------
# order
# ------------------------------------------------------------------


@cli.command()
@click.argument("model_url")
@print_options
@customer_options
@click.option("--order-number", default=None, help="Use this order number instead of a generated one.")
@click.option("--confirm", is_flag=True, default=False, help="Required flag to confirm the order.")
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output as JSON.")
@click.pass_context
def order(
    ctx: click.Context,
    model_url: str,
    color: str | None,
    material: str | None,
    quantity: int | None,
    order_number: str | None,
    confirm: bool,
    json_mode: bool,
    **customer: str | None,
) -> None:
    """Place a real print order.

    Requires --confirm: orders are charged and printed.
    """
    if not confirm:
        _emit_error(
            "CONFIRMATION_REQUIRED",
            "The --confirm flag is required to place an order.",
            json_mode,
            OTHER_ERROR,
        )

    orch = _make_orchestrator(ctx, json_mode)
    options = _print_options(color, material, quantity)
    if order_number:
        options["orderNumber"] = order_number
    result = _call(json_mode, orch.create_order, model_url, options, _customer_data(**customer))
    _emit(format_order(result, json_mode=json_mode), SUCCESS)


# ------------------------------------------------------------------
# shipping
# ------------------------------------------------------------------


@cli.command()
@click.argument("model_url")
@print_options
@customer_options
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output as JSON.")
@click.pass_context
def shipping(
    ctx: click.Context,
    model_url: str,
    color: str | None,
    material: str | None,
    quantity: int | None,
    json_mode: bool,
    **customer: str | None,
) -> None:
    """Estimate shipping cost to an address."""
    orch = _make_orchestrator(ctx, json_mode)
    result = _call(
        json_mode,
        orch.estimate_shipping,
        model_url,
        _print_options(color, material, quantity),
        _customer_data(**customer),
    )
    _emit(format_shipping(result, json_mode=json_mode), SUCCESS)


# ------------------------------------------------------------------
# track / orders / cancel
# ------------------------------------------------------------------


@cli.command()
@click.argument("order_id")
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output as JSON.")
@click.pass_context
def track(ctx: click.Context, order_id: str, json_mode: bool) -> None:
    """Show tracking information for an order."""
    orch = _make_orchestrator(ctx, json_mode)
    result = _call(json_mode, orch.get_tracking, order_id)
    _emit(format_response("success", data=result, json_mode=json_mode), SUCCESS)


@cli.command()
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output as JSON.")
@click.pass_context
def orders(ctx: click.Context, json_mode: bool) -> None:
    """List orders placed with the provider."""
    orch = _make_orchestrator(ctx, json_mode)
    result = _call(json_mode, orch.list_orders)
    _emit(format_order_list(result, json_mode=json_mode), SUCCESS)


@cli.command()
@click.argument("order_id")
@click.option("--confirm", is_flag=True, default=False, help="Required flag to confirm cancellation.")
@click.option("--json", "json_mode", is_flag=True, default=False, help="Output as JSON.")
@click.pass_context
def cancel(ctx: click.Context, order_id: str, confirm: bool, json_mode: bool) -> None:
    """Cancel an order.

    Requires --confirm flag for safety.
    """
    if not confirm:
        _emit_error(
            "CONFIRMATION_REQUIRED",
            "The --confirm flag is required to cancel an order.",
            json_mode,
            OTHER_ERROR,
        )

    orch = _make_orchestrator(ctx, json_mode)
    result = _call(json_mode, orch.cancel_order, order_id)
    _emit(format_response("success", data=result, json_mode=json_mode), SUCCESS)


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@cli.command()
@click.option("--host", envvar="SLANTBRIDGE_REST_HOST", default="127.0.0.1", help="Bind address.")
@click.option("--port", envvar="SLANTBRIDGE_REST_PORT", type=int, default=8430, help="Bind port.")
@click.option("--cors-origin", "cors_origins", multiple=True, help="Allowed CORS origin (repeatable).")
@click.option("--log-dir", default=None, help="Directory for rotating log files.")
@click.pass_context
def serve(
    ctx: click.Context,
    host: str,
    port: int,
    cors_origins: tuple[str, ...],
    log_dir: str | None,
) -> None:
    """Run the REST API server (requires the 'rest' extra)."""
    from slantbridge.log_config import configure_logging

    configure_logging(log_dir)
    orch = _make_orchestrator(ctx, False, require_key=False)
    try:
        from slantbridge.rest_api import RestApiConfig, run_rest_server

        config = RestApiConfig(host=host, port=port)
        if cors_origins:
            config.cors_origins = list(cors_origins)
        run_rest_server(config, orch)
    except ImportError as exc:
        _emit_error("CONFIG_ERROR", str(exc), False, CONFIG_ERROR)


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------


def main() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
