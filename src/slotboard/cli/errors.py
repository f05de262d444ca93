"""Slotboard rich error messages — actionable feedback (WI_0036).

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from slotboard.cli.errors import err_no_db
    console.print(err_no_db(".slotboard.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str = ".slotboard.db") -> str:
    """No .slotboard.db found."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  slotboard init"
    )


def err_no_project_id() -> str:
    """Config has no project id."""
    return (
        "[red]Error:[/] No project id configured.\n"
        "  Set project.id in slotboard.yaml, or:  export SLOTBOARD_PROJECT_ID=<id>"
    )


def err_config(message: str) -> str:
    """Config file could not be loaded."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {message}\n"
        "  Fix slotboard.yaml (or ~/.slotboard/config.yaml) and run the command again."
    )


def err_item_not_found(item_id: str) -> str:
    return (
        f"[red]Error:[/] Item '{item_id}' not found in this partition.\n"
        "  Run:  slotboard status   to list item ids"
    )


def err_invalid_target(target: str) -> str:
    """Target is neither 'pool' nor a YYYY-MM-DD date."""
    return (
        f"[red]Error:[/] Invalid target '{target}'.\n"
        "  Use:  pool  or a date like 2024-03-14"
    )


def err_invalid_month(value: str) -> str:
    return (
        f"[red]Error:[/] Invalid month '{value}'.\n"
        "  Use:  --month 2024-03"
    )


def err_slot_full(day: str, capacity: int) -> str:
    """Target day is at capacity."""
    return (
        f"[red]Error:[/] {day} already has {capacity} cards. Maximum reached.\n"
        "  Move a card off that day first:  slotboard move <item-id> pool"
    )


def err_persist_failed(item_id: str, attempts: int, cause: object) -> str:
    """Remote write exhausted its retries; the change was rolled back."""
    return (
        f"[red]Error:[/] Failed to save '{item_id}' after {attempts} attempt(s): {cause}\n"
        "  Nothing was changed. Run the same command again to retry."
    )


def err_source_missing() -> str:
    """Neither --file nor --url given to add."""
    return (
        "[red]Error:[/] No media given.\n"
        "  Use:  slotboard add --title <title> --file <path>   or   --url <url>"
    )


def err_file_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] File not found: '{path}'.\n"
        "  Check the path and run the command again."
    )
