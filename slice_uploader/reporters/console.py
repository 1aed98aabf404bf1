"""Console reporter using Rich library for formatted CLI output.

Provides colorful, formatted output during an upload run including:
- Run header with the effective settings
- Per-file start, retry and completion lines
- Final summary table with per-file and aggregate statistics
"""

from typing import TYPE_CHECKING

from rich import box
from rich.console import Console
from rich.rule import Rule
from rich.table import Table

from slice_uploader.config import UploaderSettings
from slice_uploader.models import FileResult, FileStatus, UploadJob
from slice_uploader.reporters.base import Reporter

if TYPE_CHECKING:
    from slice_uploader.runner import RunResult


STATUS_MARKUP = {
    FileStatus.SUCCEEDED: "[green]OK[/green]",
    FileStatus.FAILED: "[red]FAILED[/red]",
    FileStatus.CANCELLED: "[yellow]CANCELLED[/yellow]",
}


def format_rate(bytes_per_second: float) -> str:
    """Format a byte rate as decimal MB/s and Mb/s."""
    megabytes = bytes_per_second / 1000 / 1000
    megabits = bytes_per_second * 8 / 1000 / 1000
    return f"{megabytes:.2f} MB/s ({megabits:.1f} Mb/s)"


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, suppress per-file output (only show summary)
    """

    def __init__(self, quiet: bool = False):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = Console(legacy_windows=True)
        self.quiet = quiet

    def on_run_start(self, file_count: int, settings: UploaderSettings) -> None:
        self.console.print()
        self.console.print(
            Rule(f"[bold cyan]Uploading {file_count} file(s)[/bold cyan]", style="cyan", characters="-")
        )
        if self.quiet:
            return
        self.console.print(
            f"[dim]Chunk size {settings.chunk_size}, slicing above {settings.sliced_threshold} "
            f"bytes into at most {settings.max_slices} slices, "
            f"{settings.simultaneous_files} files / {settings.upload_threads} threads[/dim]"
        )

    def on_file_skipped(self, path: str, reason: str) -> None:
        self.console.print(f"  [yellow][SKIP][/yellow] {path}: {reason}")

    def on_file_start(self, job: UploadJob) -> None:
        if self.quiet:
            return
        self.console.print(f"  [cyan][START][/cyan] {job.path} ({job.size / 1000 / 1000 / 1000:.3f} GB)")

    def on_attempt_failed(self, job: UploadJob, attempt: int, reason: str) -> None:
        if self.quiet:
            return
        self.console.print(f"  [yellow][RETRY][/yellow] {job.path}: attempt {attempt} failed")
        self.console.print(f"     [dim]{reason}[/dim]")

    def on_file_complete(self, result: FileResult) -> None:
        if self.quiet:
            return

        status = STATUS_MARKUP[result.status]
        line = f"  {status}: {result.path}"
        if result.status == FileStatus.SUCCEEDED:
            line += f" in {result.elapsed_seconds:.1f}s, {format_rate(result.bytes_per_second)}"
        self.console.print(line)

        if result.error_message and result.status != FileStatus.SUCCEEDED:
            self.console.print(f"     [dim]{result.error_message}[/dim]")
        for key in result.orphaned_keys:
            self.console.print(f"     [dim yellow]orphaned slice: {key}[/dim yellow]")

    def on_run_complete(self, result: "RunResult") -> None:
        if not result.files and not result.skipped:
            self.console.print("[yellow]No files uploaded.[/yellow]")
            return

        self.console.print()
        self.console.print(Rule("[bold]Upload Summary[/bold]", style="magenta", characters="-"))

        table = Table(
            title="",
            show_header=True,
            header_style="bold magenta",
            border_style="dim",
            box=box.ASCII,
        )
        table.add_column("File", style="cyan", no_wrap=True)
        table.add_column("Route", justify="center", no_wrap=True)
        table.add_column("Attempts", justify="right", no_wrap=True)
        table.add_column("Elapsed", justify="right", no_wrap=True)
        table.add_column("MB/s", justify="right", no_wrap=True)
        table.add_column("Status", justify="center", no_wrap=True)

        for path, file_result in result.files.items():
            table.add_row(
                path,
                file_result.route.value if file_result.route else "-",
                str(file_result.attempts),
                f"{file_result.elapsed_seconds:.1f}s",
                f"{file_result.bytes_per_second / 1000 / 1000:.2f}",
                STATUS_MARKUP[file_result.status],
            )
        for path in result.skipped:
            table.add_row(path, "-", "0", "-", "-", "[yellow]SKIPPED[/yellow]")

        self.console.print(table)
        self.console.print(
            f"Elapsed time {result.total_duration:.1f}s, "
            f"{result.total_bytes} bytes, effective {format_rate(result.bytes_per_second)}"
        )
        self.console.print()
