"""Utility functions for formatted CLI output."""

from typing import Any

import click


def print_header(title: str, width: int = 70, color: str = "cyan") -> None:
    """Print a formatted header.

    Args:
        title: Header title
        width: Header width
        color: Header color
    """
    click.echo()
    click.echo(click.style("=" * width, fg=color))
    click.echo(click.style(title, fg=color, bold=True))
    click.echo(click.style("=" * width, fg=color))
    click.echo()


def print_section(title: str, color: str = "yellow") -> None:
    """Print a section title."""
    click.echo(click.style(f"\n{title}:", fg=color, bold=True))


def print_key_value(
    key: str, value: Any, key_color: str = "white", value_color: str = "cyan"
) -> None:
    """Print a key-value pair."""
    click.echo(
        click.style(f"  {key}: ", fg=key_color) + click.style(str(value), fg=value_color, bold=True)
    )


def print_success(message: str) -> None:
    click.echo(click.style(f"✓ {message}", fg="green", bold=True))


def print_error(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red", bold=True))


def print_summary(stats: dict[str, Any], title: str = "Archive Workflow Summary") -> None:
    """Print a formatted summary of one workflow run.

    Args:
        stats: Run statistics as produced by ArchiveWorkflow
        title: Summary title
    """
    print_header(title)

    print_section("Run")
    print_key_value("Job", stats.get("job_id", "-"))
    print_key_value("Watermark", stats.get("watermark", "-"))
    print_key_value("Archiving enabled", stats.get("archive_enabled", "-"))

    categories = stats.get("categories", {})
    if categories:
        print_section("Records")
        for name, counts in categories.items():
            print_key_value(
                name,
                f"archived {counts.get('archived', 0):,} / deleted {counts.get('deleted', 0):,}",
            )

    steps = stats.get("steps_completed", [])
    print_section("Steps")
    print_key_value("Completed", len(steps))
    if stats.get("failed_step"):
        print_key_value("Failed at", stats["failed_step"], value_color="red")

    click.echo()
    if stats.get("status") == "ok":
        print_success("Archive workflow completed")
    else:
        print_error(f"Archive workflow failed: {stats.get('error', 'unknown error')}")
    click.echo()
