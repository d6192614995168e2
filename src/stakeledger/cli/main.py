#!/usr/bin/env python3
"""
stakeledger CLI - offline previews of ledger economics

Commands:
- tiers: lock tiers with durations and multipliers
- schedule-id: deterministic vesting schedule ID for a beneficiary/index
- vesting-preview: releasable amount over the life of a schedule
- accrual-preview: rewards earned by constant stakers over a period
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from stakeledger.core.config import LedgerConfig
from stakeledger.core.constants import SCALE, SECONDS_PER_DAY
from stakeledger.core.contracts.erc20 import ERC20Token, TokenError
from stakeledger.core.environment import Clock, ExecutionEnvironment
from stakeledger.core.exceptions import LedgerError
from stakeledger.core.logging_config import setup_logging
from stakeledger.governance.lock_registry import LOCK_TIERS
from stakeledger.staking.accrual_pool import AccrualPool
from stakeledger.vesting.ledger import VestingSchedule, compute_releasable, compute_schedule_id

logger = logging.getLogger(__name__)
console = Console()

PREVIEW_OWNER = "0x" + "a" * 40


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _emit(ctx: click.Context, payload: Any, table: Table | None = None) -> None:
    if ctx.obj["json_output"] or table is None:
        click.echo(json.dumps(payload, indent=2))
    else:
        console.print(table)


def _format_multiplier(multiplier: int) -> str:
    return f"{multiplier / SCALE:.2f}x"


@click.group()
@click.option("--json-output", is_flag=True, help="Emit machine-readable JSON")
@click.pass_context
def cli(ctx: click.Context, json_output: bool):
    """Token staking, vesting and lock ledger tools."""
    try:
        config = LedgerConfig.from_env()
    except LedgerError as exc:
        _handle_cli_error(exc)
    setup_logging(
        name="stakeledger",
        log_file=config.log_file,
        level=config.log_level,
        environment=config.environment.value,
    )
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output
    ctx.obj["config"] = config


@cli.command("tiers")
@click.pass_context
def show_tiers(ctx: click.Context):
    """List lock tiers and their voting-power multipliers."""
    table = Table(title="Lock Tiers", box=box.ROUNDED)
    table.add_column("Tier", style="cyan")
    table.add_column("Duration (days)", justify="right")
    table.add_column("Multiplier", justify="right", style="green")
    for config in LOCK_TIERS:
        table.add_row(
            config.tier.value,
            str(config.duration // SECONDS_PER_DAY),
            _format_multiplier(config.multiplier),
        )
    _emit(ctx, {"tiers": [config.to_dict() for config in LOCK_TIERS]}, table)


@cli.command("schedule-id")
@click.argument("beneficiary")
@click.argument("index", type=int)
@click.pass_context
def schedule_id(ctx: click.Context, beneficiary: str, index: int):
    """Print the vesting schedule ID for BENEFICIARY's INDEX-th schedule."""
    try:
        value = compute_schedule_id(beneficiary, index)
    except LedgerError as exc:
        _handle_cli_error(exc)
    if ctx.obj["json_output"]:
        _emit(ctx, {"beneficiary": beneficiary.lower(), "index": index, "schedule_id": value})
    else:
        click.echo(value)


@cli.command("vesting-preview")
@click.option("--amount", type=int, required=True, help="Total tokens in the schedule")
@click.option("--cliff", type=int, default=0, show_default=True, help="Cliff duration in seconds")
@click.option("--duration", type=int, required=True, help="Vesting duration in seconds")
@click.option("--step", type=int, default=None, help="Seconds between rows (default: duration/10)")
@click.pass_context
def vesting_preview(ctx: click.Context, amount: int, cliff: int, duration: int, step: int | None):
    """Show how much of a schedule is releasable over time."""
    if amount <= 0 or duration <= 0 or cliff < 0 or cliff > duration:
        _handle_cli_error(click.BadParameter("need amount > 0, duration > 0 and 0 <= cliff <= duration"))
    step = step or max(duration // 10, 1)
    if step <= 0:
        _handle_cli_error(click.BadParameter("step must be positive"))

    schedule = VestingSchedule(
        schedule_id="preview",
        beneficiary=PREVIEW_OWNER,
        start=0,
        cliff=cliff,
        duration=duration,
        revocable=False,
        total_amount=amount,
    )
    offsets = sorted(set(range(0, duration, step)) | {cliff, duration})
    rows = [{"elapsed": t, "releasable": compute_releasable(schedule, t)} for t in offsets]

    table = Table(title="Vesting Preview", box=box.ROUNDED)
    table.add_column("Elapsed (s)", justify="right")
    table.add_column("Releasable", justify="right", style="green")
    for row in rows:
        table.add_row(str(row["elapsed"]), str(row["releasable"]))
    _emit(ctx, {"amount": amount, "cliff": cliff, "duration": duration, "rows": rows}, table)


@cli.command("accrual-preview")
@click.option("--rate", type=int, required=True, help="Reward units emitted per second")
@click.option("--seconds", type=int, required=True, help="Length of the period")
@click.option(
    "--stake",
    "stakes",
    multiple=True,
    required=True,
    help="ADDRESS=AMOUNT, staked at the start of the period (repeatable)",
)
@click.pass_context
def accrual_preview(ctx: click.Context, rate: int, seconds: int, stakes: tuple[str, ...]):
    """Simulate rewards for stakers holding constant stakes."""
    try:
        parsed = []
        seen: set[str] = set()
        for item in stakes:
            address, sep, raw_amount = item.partition("=")
            if not sep:
                raise click.BadParameter(f"expected ADDRESS=AMOUNT, got {item!r}")
            account = address.strip().lower()
            if account in seen:
                raise click.BadParameter(f"duplicate address {account}")
            seen.add(account)
            parsed.append((account, int(raw_amount)))
        if seconds < 0:
            raise click.BadParameter("seconds cannot be negative")

        config = ctx.obj["config"]
        env = ExecutionEnvironment(Clock(start_time=config.start_time or 0))
        stake_token = ERC20Token(name="Preview Stake", symbol="PSTK", owner=PREVIEW_OWNER)
        reward_token = ERC20Token(name="Preview Reward", symbol="PRWD", owner=PREVIEW_OWNER)
        pool = AccrualPool(
            env,
            owner=PREVIEW_OWNER,
            staking_token=stake_token,
            reward_token=reward_token,
            reward_rate=rate,
        )
        for address, amount in parsed:
            stake_token.mint(PREVIEW_OWNER, address, amount)
            stake_token.approve(address, pool.address, amount)
            pool.stake(address, amount)
        env.clock.advance(seconds)
        rows = [{"account": address, "stake": amount, "earned": pool.earned(address)} for address, amount in parsed]
    except (LedgerError, TokenError, ValueError, click.BadParameter) as exc:
        _handle_cli_error(exc)

    table = Table(title=f"Accrual over {seconds}s at {rate}/s", box=box.ROUNDED)
    table.add_column("Account", style="cyan")
    table.add_column("Stake", justify="right")
    table.add_column("Earned", justify="right", style="green")
    for row in rows:
        table.add_row(row["account"], str(row["stake"]), str(row["earned"]))
    _emit(ctx, {"rate": rate, "seconds": seconds, "stakers": rows}, table)


def main():
    """Console script entry point."""
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
