"""CLI entrypoint for the YDS vault client."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Annotated, Awaitable, Callable

import typer
from rich.live import Live

from .checks.node_probe import NodeProbe
from .constants import ASSET_DECIMALS, SHARE_DECIMALS
from .domain import LifecycleState, OperationKind, PendingOperation
from .exceptions import InvalidAmount, VaultClientError
from .logger import setup_logging
from .orchestrator import DepositFlowState
from .report import print_operation, print_snapshot, render_snapshot
from .scheduler import RetryPolicy, Scheduler
from .session import VaultSession
from .settings import VaultSettings
from .state import AppState
from .units import DecimalAmount, format_amount, parse_user_input

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Deposit into, withdraw from and harvest a yield-donating vault on a local chain.",
)

Action = Callable[[VaultSession], Awaitable[PendingOperation]]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("yds_vault")


def _state(ctx: typer.Context) -> AppState:
    return ctx.obj


def _parse_amount(text: str, scale: int, param: str) -> DecimalAmount:
    try:
        return parse_user_input(text, scale)
    except InvalidAmount as e:
        raise typer.BadParameter(e.message, param_hint=param) from e


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [yds_vault] table).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="JSON-RPC endpoint of the local node."),
    ] = None,
    account: Annotated[
        str | None,
        typer.Option(
            "--account",
            "-a",
            help="Account address to act as (must be unlocked on the node unless a private key is set).",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration shared by every command."""
    if config_path:
        os.environ["YDS_VAULT_CONFIG"] = str(config_path)

    init_kwargs: dict[str, str] = {}
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if account is not None:
        init_kwargs["account_address"] = account
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = VaultSettings(**init_kwargs)

    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings, logger=_build_logger())

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


def _execute(state: AppState, action: Action) -> None:
    """Run one write inside a short-lived session and report the outcome."""

    async def _go() -> PendingOperation:
        async with VaultSession(state.settings, poll=False) as session:
            if not session.network.is_correct_network:
                state.logger.warning(
                    "Wallet is on %s; the transaction may be rejected",
                    session.network.current_network_name,
                )
            return await action(session)

    try:
        operation = asyncio.run(_go())
    except InvalidAmount as e:
        raise typer.BadParameter(e.message) from e
    except VaultClientError as e:
        state.console.print(f"[red]{e.message}[/]")
        raise typer.Exit(code=1) from e

    print_operation(operation, state.console)
    if operation.state is not LifecycleState.CONFIRMED:
        raise typer.Exit(code=1)


@app.command()
def status(ctx: typer.Context) -> None:
    """Print vault stats, your position and donation totals once."""
    state = _state(ctx)

    async def _status() -> None:
        async with VaultSession(state.settings, poll=False) as session:
            await session.probe.run_check()
            print_snapshot(session.snapshot(), state.console)

    asyncio.run(_status())


@app.command()
def watch(
    ctx: typer.Context,
    refresh: Annotated[
        float,
        typer.Option("--refresh", help="Seconds between screen refreshes.", min=0.1),
    ] = 1.0,
) -> None:
    """Live dashboard, refreshed while polling runs in the background. Ctrl+C to exit."""
    state = _state(ctx)

    async def _watch() -> None:
        async with VaultSession(state.settings) as session:
            with Live(
                render_snapshot(session.snapshot()),
                console=state.console,
                refresh_per_second=4,
            ) as live:
                while True:
                    await asyncio.sleep(refresh)
                    live.update(render_snapshot(session.snapshot()))

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        state.console.print("[dim]Stopped.[/]")


@app.command()
def probe(ctx: typer.Context) -> None:
    """Check that the local node answers with the expected chain id."""
    state = _state(ctx)
    settings = state.settings

    async def _probe():
        async with Scheduler() as scheduler:
            node = NodeProbe(
                scheduler,
                rpc_url=settings.rpc_url,
                expected_chain_id=settings.target_chain_id,
                failure_threshold=1,
                timeout=settings.rpc_timeout,
                retry_policy=RetryPolicy(
                    max_tries=settings.rpc_max_tries,
                    interval=settings.rpc_retry_interval,
                ),
            )
            return await node.run_check()

    result = asyncio.run(_probe())
    if result.passed:
        state.console.print(f"[green]{result.message}[/]")
        return
    state.console.print(f"[red]{result.message}[/]")
    state.console.print(
        "Start the node with [bold]anvil[/] and deploy the contracts, then retry."
    )
    raise typer.Exit(code=1)


@app.command()
def mint(
    ctx: typer.Context,
    amount: Annotated[str, typer.Argument(help="USDC to mint, e.g. 1000 or 12.5")],
) -> None:
    """Mint test USDC to your account."""
    value = _parse_amount(amount, ASSET_DECIMALS, "amount")
    _execute(_state(ctx), lambda session: session.mint_usdc(value))


@app.command()
def approve(
    ctx: typer.Context,
    amount: Annotated[str, typer.Argument(help="USDC the vault may pull.")],
) -> None:
    """Approve the vault to spend your USDC."""
    value = _parse_amount(amount, ASSET_DECIMALS, "amount")
    _execute(_state(ctx), lambda session: session.approve(value))


@app.command()
def deposit(
    ctx: typer.Context,
    amount: Annotated[str, typer.Argument(help="USDC to deposit.")],
    receiver: Annotated[
        str | None,
        typer.Option("--receiver", help="Address receiving the shares (defaults to you)."),
    ] = None,
) -> None:
    """Deposit USDC, approving the vault first when the allowance is short."""
    value = _parse_amount(amount, ASSET_DECIMALS, "amount")

    async def _deposit(session: VaultSession) -> PendingOperation:
        flow_state = await session.deposit(value, receiver)
        if flow_state is DepositFlowState.DEPOSIT_CONFIRMED:
            return session.trackers[OperationKind.DEPOSIT].snapshot
        return PendingOperation(
            kind=OperationKind.DEPOSIT,
            state=LifecycleState.FAILED,
            error=session.deposit_flow.error,
        )

    _execute(_state(ctx), _deposit)


@app.command()
def withdraw(
    ctx: typer.Context,
    amount: Annotated[str, typer.Argument(help="USDC to withdraw.")],
    via_redeem: Annotated[
        bool,
        typer.Option(
            "--redeem/--no-redeem",
            help="Redeem the equivalent share count instead of calling withdraw.",
        ),
    ] = False,
) -> None:
    """Withdraw USDC from the vault."""
    value = _parse_amount(amount, ASSET_DECIMALS, "amount")
    _execute(_state(ctx), lambda session: session.withdraw(value, via_redeem=via_redeem))


@app.command()
def redeem(
    ctx: typer.Context,
    shares: Annotated[str, typer.Argument(help="Vault shares to burn.")],
) -> None:
    """Redeem vault shares for USDC."""
    value = _parse_amount(shares, SHARE_DECIMALS, "shares")
    _execute(_state(ctx), lambda session: session.redeem(value))


@app.command()
def harvest(ctx: typer.Context) -> None:
    """Route profit above the watermark to the donation recipients."""
    _execute(_state(ctx), lambda session: session.harvest())


@app.command("simulate-yield")
def simulate_yield(
    ctx: typer.Context,
    amount: Annotated[
        str | None,
        typer.Argument(help="USDC of yield to credit (defaults to 10% of your position)."),
    ] = None,
) -> None:
    """Credit mock yield to the vault through the yield adapter."""
    state = _state(ctx)
    value = _parse_amount(amount, ASSET_DECIMALS, "amount") if amount is not None else None

    async def _simulate(session: VaultSession) -> PendingOperation:
        target = value if value is not None else session.suggested_yield()
        state.console.print(f"Simulating {format_amount(target)} USDC of yield")
        return await session.simulate_yield(target)

    _execute(state, _simulate)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
