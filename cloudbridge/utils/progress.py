"""Progress indicator utilities using Rich library."""

from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn


def create_spinner_progress(console: Optional[Console] = None) -> Progress:
    """Create a simple spinner progress for indeterminate operations.

    Returns:
        Progress instance with spinner
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    )


@contextmanager
def spinner(description: str, console: Optional[Console] = None) -> Iterator[Progress]:
    """Show a spinner while a blocking call runs."""
    with create_spinner_progress(console) as progress:
        progress.add_task(description, total=None)
        yield progress
