"""Rich console rendering of a vault snapshot."""

from __future__ import annotations

from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from ..constants import network_name
from ..domain import (
    NOT_YET_LOADED,
    LifecycleState,
    Loadable,
    NetworkStatus,
    NodeStatus,
    PendingOperation,
)
from ..orchestrator import DepositFlowState
from ..processors import split_profit
from ..session import VaultSnapshot
from ..units import DecimalAmount, format_amount, format_compact

_NETWORK_STYLE = {
    NetworkStatus.CORRECT: "green",
    NetworkStatus.WRONG: "red",
    NetworkStatus.SWITCHING: "yellow",
}

_NODE_STYLE = {
    NodeStatus.CHECKING: "yellow",
    NodeStatus.RUNNING: "green",
    NodeStatus.WRONG_CHAIN: "red",
    NodeStatus.UNREACHABLE: "red",
}

_OPERATION_STYLE = {
    LifecycleState.SUBMITTING: "yellow",
    LifecycleState.AWAITING_CONFIRMATION: "yellow",
    LifecycleState.CONFIRMED: "green",
    LifecycleState.FAILED: "red",
}


def _truncate_address(address: str | None) -> str:
    """Truncate address for display."""
    if not address:
        return "[dim]not connected[/]"
    return f"{address[:6]}...{address[-4:]}"


def _fmt(value: Loadable[DecimalAmount], places: int = 2, suffix: str = "") -> str:
    if value is NOT_YET_LOADED:
        return "[dim]loading...[/]"
    return f"{format_amount(value, places)}{suffix}"


def _kv_table(style: str) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style=style)
    return table


def build_vault_panel(snapshot: VaultSnapshot) -> Panel:
    table = _kv_table("cyan")
    vault = snapshot.vault
    table.add_row(
        "Total Assets",
        "[dim]loading...[/]"
        if vault.total_assets is NOT_YET_LOADED
        else f"{format_compact(vault.total_assets)} USDC",
    )
    table.add_row("Total Shares", _fmt(vault.total_supply, 4))
    price = snapshot.share_price
    price_text = format_amount(price.value, 4)
    if price.is_default:
        price_text += f" [dim]({price.source.value})[/]"
    table.add_row("Share Price", price_text)
    table.add_row("Watermark", _fmt(vault.watermark, suffix=" USDC"))
    table.add_row("Available Profit", _fmt(snapshot.available_profit, suffix=" USDC"))
    return Panel(table, title="[bold]Vault Stats[/]", border_style="blue")


def build_position_panel(snapshot: VaultSnapshot) -> Panel:
    table = _kv_table("green")
    position = snapshot.position
    table.add_row("Account", _truncate_address(snapshot.account))
    table.add_row("USDC Balance", _fmt(position.asset_balance, suffix=" USDC"))
    table.add_row("Vault Shares", _fmt(position.share_balance, 4))
    table.add_row("Position Value", _fmt(snapshot.position_value, suffix=" USDC"))
    table.add_row("Allowance", _fmt(position.allowance, suffix=" USDC"))
    return Panel(table, title="[bold]Your Position[/]", border_style="green")


def build_donations_panel(snapshot: VaultSnapshot) -> Panel:
    donations = snapshot.donations
    table = Table(expand=True, show_lines=False)
    table.add_column("Recipient", style="cyan", no_wrap=True)
    table.add_column("Address", style="dim")
    table.add_column("Allocation", justify="right", style="yellow")
    table.add_column("Received", justify="right", style="green")
    table.add_column("Next Harvest", justify="right", style="cyan")
    next_harvest = {
        recipient["address"]: share for recipient, share in split_profit(donations.current_profit)
    }
    for recipient in donations.recipients:
        share = next_harvest.get(recipient.address)
        table.add_row(
            recipient.name,
            _truncate_address(recipient.address),
            recipient.allocation,
            f"{format_amount(recipient.received)} USDC",
            f"{format_amount(share)} USDC" if share is not None else "-",
        )
    table.add_row(
        "[bold]Total[/]",
        "",
        "",
        f"[bold]{format_amount(donations.total_donated)} USDC[/]",
        f"[bold]{format_amount(donations.current_profit)} USDC[/]",
    )
    footer = f"Next harvest routes [bold]{format_amount(donations.current_profit)} USDC[/]"
    return Panel(
        Group(table, footer),
        title="[bold]Donations[/]",
        border_style="magenta",
    )


def build_status_panel(snapshot: VaultSnapshot) -> Panel:
    table = _kv_table("white")
    network = snapshot.network
    net_style = _NETWORK_STYLE[network.status]
    table.add_row(
        "Wallet Network",
        f"[{net_style}]{network_name(network.current_chain_id)} ({network.status.value})[/]",
    )
    table.add_row("Target Network", network_name(network.target_chain_id))
    node_style = _NODE_STYLE[snapshot.node_status]
    table.add_row("Node", f"[{node_style}]{snapshot.node_status.value}[/]")

    flow = snapshot.deposit_flow
    if flow.state is not DepositFlowState.READY:
        flow_text = flow.state.value
        if flow.amount is not None:
            flow_text += f" ({format_amount(flow.amount)} USDC)"
        table.add_row("Deposit Flow", flow_text)
    return Panel(table, title="[bold]Network[/]", border_style="yellow")


def _operation_row(operation: PendingOperation) -> tuple[str, str, str, str]:
    style = _OPERATION_STYLE.get(operation.state, "dim")
    return (
        operation.kind.value,
        f"[{style}]{operation.state.value}[/]",
        operation.tx_hash or "",
        operation.error_message or "",
    )


def build_operations_panel(snapshot: VaultSnapshot) -> Panel | None:
    """Panel of operations that are not idle, or None when all are."""
    active = [
        operation
        for operation in snapshot.operations.values()
        if operation.state is not LifecycleState.IDLE
    ]
    if not active:
        return None
    table = Table(expand=True)
    table.add_column("Operation", style="cyan", no_wrap=True)
    table.add_column("State")
    table.add_column("Tx Hash", style="dim", overflow="fold")
    table.add_column("Error", style="red")
    for operation in active:
        table.add_row(*_operation_row(operation))
    return Panel(table, title="[bold]Transactions[/]", border_style="white")


def render_snapshot(snapshot: VaultSnapshot) -> Group:
    """Two-column dashboard: stats and position on top, donations and status below."""
    parts = [
        Columns([build_vault_panel(snapshot), build_position_panel(snapshot)], equal=True, expand=True),
        Columns([build_donations_panel(snapshot), build_status_panel(snapshot)], equal=True, expand=True),
    ]
    operations = build_operations_panel(snapshot)
    if operations is not None:
        parts.append(operations)
    return Group(*parts)


def print_snapshot(snapshot: VaultSnapshot, console: Console | None = None) -> None:
    """Print the dashboard to stdout."""
    (console or Console()).print(render_snapshot(snapshot))


def print_operation(operation: PendingOperation, console: Console | None = None) -> None:
    """One line summary of a finished write."""
    console = console or Console()
    kind, state, tx_hash, error = _operation_row(operation)
    line = f"[bold]{kind}[/] {state}"
    if tx_hash:
        line += f" [dim]{tx_hash}[/]"
    if operation.block_number is not None:
        line += f" [dim](block {operation.block_number})[/]"
    if error:
        line += f"\n[red]{error}[/]"
    console.print(line)
