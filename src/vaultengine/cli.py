"""
CLI entry point for the Vault Engine.

Usage:
    vaultengine serve --port 3001
    vaultengine resolve USDC --network testnet
    vaultengine pool XLM RELIO
    vaultengine count "How many tokens is this?" --model gpt-4o
    vaultengine generate "Build a conservative stablecoin vault"
"""

import argparse
import sys
from pathlib import Path

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_settings
from .errors import VaultEngineError

console = Console()

DEFAULT_SERVER = "http://localhost:3001"


def _token_address(value: str, network: str) -> str:
    """Accept a custom token symbol, a registry symbol or a contract address."""
    from vaultengine.registry.liquidity_pools import CUSTOM_TOKENS
    from vaultengine.registry.token_registry import resolve_asset_address

    if value.upper() in CUSTOM_TOKENS:
        return CUSTOM_TOKENS[value.upper()]
    return resolve_asset_address(value, network)


def run_server(args: argparse.Namespace) -> int:
    """Start the HTTP API."""
    import uvicorn

    from vaultengine.logging_config import configure_logging

    settings = get_settings()
    configure_logging(settings.log_level, console=Console(stderr=True))

    console.print(Panel(
        f"[bold cyan]http://{args.host or settings.host}:{args.port or settings.port}[/bold cyan]\n"
        f"[dim]Network: {settings.network}[/dim]",
        title="[bold]Vault Engine[/bold]",
    ))
    uvicorn.run(
        "vaultengine.api.app:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def resolve_asset(args: argparse.Namespace) -> int:
    from vaultengine.registry.token_registry import resolve_asset_address, resolve_asset_symbol

    try:
        address = resolve_asset_address(args.asset, args.network)
    except VaultEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        hint = getattr(e, "hint", None)
        if hint:
            console.print(f"[dim]Learn more: {hint}[/dim]")
        return 1

    console.print(f"[green]✓[/green] {args.asset} on {args.network}: [cyan]{address}[/cyan]")
    console.print(f"  [dim]→ symbol: {resolve_asset_symbol(address)}[/dim]")
    return 0


def show_symbol(args: argparse.Namespace) -> int:
    from vaultengine.registry.liquidity_pools import get_token_symbol, is_custom_token
    from vaultengine.registry.token_registry import is_usdc_address, resolve_asset_symbol

    if is_custom_token(args.address):
        symbol = get_token_symbol(args.address)
        console.print(f"{symbol} [dim](custom token with XLM pool)[/dim]")
    else:
        symbol = resolve_asset_symbol(args.address)
        suffix = " [dim](USDC variant)[/dim]" if is_usdc_address(args.address) else ""
        console.print(f"{symbol}{suffix}")
    return 0


def show_pool(args: argparse.Namespace) -> int:
    from vaultengine.registry.liquidity_pools import get_pool_address

    try:
        token_a = _token_address(args.token_a, "testnet")
        token_b = _token_address(args.token_b, "testnet")
    except VaultEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    pool = get_pool_address(token_a, token_b)
    if pool is None:
        console.print(f"[yellow]No pool for {args.token_a}/{args.token_b}[/yellow]")
        return 1

    console.print(f"[green]✓[/green] {args.token_a}/{args.token_b} pool: [cyan]{pool}[/cyan]")
    return 0


def list_pools_table(args: argparse.Namespace) -> int:
    from vaultengine.registry.liquidity_pools import list_pools

    table = Table(title="XLM Liquidity Pools (testnet)")
    table.add_column("Token", style="cyan")
    table.add_column("Token Contract", style="dim")
    table.add_column("Pool Contract")

    for pool in list_pools():
        table.add_row(pool.symbol, pool.token_address, pool.pool_address)

    console.print(table)
    return 0


def list_tokens(args: argparse.Namespace) -> int:
    """List registry assets per network."""
    from vaultengine.registry.token_registry import TOKEN_REGISTRY, Network

    table = Table(title="Registered Assets")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    for network in Network:
        table.add_column(network.value, style="dim")

    for info in TOKEN_REGISTRY.values():
        table.add_row(
            info.symbol,
            info.name,
            *[(info.address_on(n) or "-")[:12] for n in Network],
        )

    console.print(table)
    return 0


def list_templates_table(args: argparse.Namespace) -> int:
    from vaultengine.api.templates import list_templates

    table = Table(title="Vault Templates")
    table.add_column("ID", style="cyan")
    table.add_column("Category")
    table.add_column("Est. APY", justify="right")
    table.add_column("Description", style="dim")

    for template in list_templates(args.category):
        table.add_row(template.id, template.category, template.estimated_apy, template.description)

    console.print(table)
    return 0


def count_tokens(args: argparse.Namespace) -> int:
    """Count tokens in text, or in a file when the argument starts with @."""
    from vaultengine.llm.token_counter import TokenCounter

    text = args.text
    if text.startswith("@"):
        text = Path(text[1:]).read_text()

    try:
        with TokenCounter(model=args.model) as counter:
            tokens = counter.count_text_tokens(text)
            message = counter.count_message_tokens({"role": "user", "content": text})
    except VaultEngineError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(f"Text tokens: [bold]{tokens}[/bold]")
    console.print(f"As a user message: [bold]{message}[/bold] [dim](incl. formatting overhead)[/dim]")
    return 0


def generate_vault(args: argparse.Namespace) -> int:
    """Ask a running server to build a vault from a prompt."""
    console.print()
    console.print(Panel(f"[bold]{args.prompt}[/bold]", title="Generating Vault"))

    try:
        with httpx.Client(timeout=120.0) as client:
            response = client.post(
                f"{args.server.rstrip('/')}/api/nl/generate-vault",
                json={"prompt": args.prompt},
            )
            body = response.json()
    except (httpx.HTTPError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if not body.get("success"):
        console.print(f"[red]✗ {body.get('message', 'Generation failed')}[/red]")
        for issue in body.get("validationErrors", []):
            console.print(f"  [red]• {issue.get('msg')}[/red]")
        return 1

    data = body["data"]
    console.print(f"\n{data.get('explanation', '')}\n")

    if data.get("responseType") == "build":
        table = Table(title="Vault Blocks")
        table.add_column("ID", style="cyan")
        table.add_column("Type")
        table.add_column("Label")
        table.add_column("Allocation", justify="right")
        for node in data.get("nodes", []):
            node_data = node.get("data", {})
            allocation = node_data.get("allocation")
            table.add_row(
                str(node.get("id")),
                str(node.get("type")),
                str(node_data.get("label", "")),
                f"{allocation:.1f}%" if isinstance(allocation, (int, float)) else "",
            )
        console.print(table)
        console.print(f"[dim]{len(data.get('edges', []))} connections[/dim]")

    for suggestion in data.get("suggestions", []):
        console.print(f"  → {suggestion}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="vaultengine",
        description="Natural language vault strategy engine for Stellar",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", "-p", type=int, default=None)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve an asset symbol to a contract address")
    resolve_parser.add_argument("asset", type=str, help="Symbol (XLM, USDC, ...) or contract address")
    resolve_parser.add_argument(
        "--network", "-n",
        type=str,
        default="testnet",
        choices=["testnet", "futurenet", "mainnet", "public"],
    )

    symbol_parser = subparsers.add_parser("symbol", help="Look up the symbol for a contract address")
    symbol_parser.add_argument("address", type=str)

    pool_parser = subparsers.add_parser("pool", help="Find the liquidity pool for a token pair")
    pool_parser.add_argument("token_a", type=str, help="Symbol or contract address")
    pool_parser.add_argument("token_b", type=str, help="Symbol or contract address")

    subparsers.add_parser("pools", help="List XLM liquidity pools")
    subparsers.add_parser("tokens", help="List registered assets")

    templates_parser = subparsers.add_parser("templates", help="List vault templates")
    templates_parser.add_argument("--category", "-c", type=str, default=None)

    count_parser = subparsers.add_parser("count", help="Count tokens in text (or @file)")
    count_parser.add_argument("text", type=str)
    count_parser.add_argument("--model", "-m", type=str, default=None)

    generate_parser = subparsers.add_parser("generate", help="Generate a vault via a running server")
    generate_parser.add_argument("prompt", type=str, help="Natural language prompt")
    generate_parser.add_argument("--server", "-s", type=str, default=DEFAULT_SERVER)

    return parser


COMMANDS = {
    "serve": run_server,
    "resolve": resolve_asset,
    "symbol": show_symbol,
    "pool": show_pool,
    "pools": list_pools_table,
    "tokens": list_tokens,
    "templates": list_templates_table,
    "count": count_tokens,
    "generate": generate_vault,
}


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
