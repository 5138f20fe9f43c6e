from __future__ import annotations

import argparse
import logging
import subprocess
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from depsweep import __version__
from depsweep.config import UNINSTALL_COMMANDS
from depsweep.exceptions import ManifestError
from depsweep.models import Report

log = logging.getLogger(__name__)

CONFIG_HELP = """\
Local config (.cleanupdepsrc or .cleanupdepsrc.json):
  {
    "ignore": ["eslint", "prettier"],
    "ignorePatterns": ["@types/*", "*-loader"],
    "strict": false,
    "specialPackages": {"storybook": [".storybook"]},
    "usagePatterns": ["loader: '{name}'"]
  }
"""

Ask = Callable[[str], str]


@dataclass
class CleanupStats:
    removed: int = 0
    kept: int = 0
    skipped: int = 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="depsweep",
        description=(
            "Find declared npm dependencies that nothing in the project uses "
            "and offer to remove them."
        ),
        epilog=CONFIG_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--path", default=".", help="Project directory containing package.json")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show the verdict and reason for every package",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be removed without changing anything",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Remove every unused package without prompting",
    )
    parser.add_argument("--json", metavar="FILE", help="Also write the report as JSON")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args(list(argv) if argv is not None else None)
    root = Path(args.path).resolve()
    if not root.exists() or not root.is_dir():
        raise SystemExit(f"Path does not exist or is not a directory: {root}")

    _configure_logging(args.debug)
    console = Console(highlight=False)

    from depsweep.analyzer import analyze, write_report

    console.print("[bold magenta]depsweep[/] scanning for unused dependencies")
    try:
        report = analyze(root)
    except ManifestError as exc:
        raise SystemExit(f"Error: {exc}") from exc

    if report.config_source:
        console.print(f"[green]Loaded config from {escape(report.config_source)}[/]")
    console.print(f"[green]Found {report.files_scanned} files to inspect[/]")
    console.print(f"[cyan]Project:[/] {escape(report.project)}")
    console.print(f"[cyan]Package manager:[/] {report.package_manager}")
    if report.monorepo:
        console.print("[yellow]Monorepo detected (workspaces are not analyzed separately)[/]")
    if args.dry_run:
        console.print("[yellow]Dry-run: nothing will be removed[/]")
    if args.debug:
        console.print(_verdict_table(report))

    if args.json:
        write_report(Path(args.json), report)
        console.print(f"Report written to {args.json}")

    stats = run_cleanup(
        console,
        report,
        dry_run=args.dry_run,
        assume_yes=args.yes,
    )
    _print_summary(console, stats)
    return 0


def run_cleanup(
    console: Console,
    report: Report,
    dry_run: bool = False,
    assume_yes: bool = False,
    ask: Ask | None = None,
) -> CleanupStats:
    if ask is None:

        def ask(question: str) -> str:
            try:
                return Prompt.ask(question, console=console, default="n")
            except EOFError:
                # stdin closed: nothing more can be confirmed
                console.print()
                return "s"

    stats = CleanupStats(kept=len(report.kept))
    checked = len(report.verdicts)
    console.print(f"Checked {checked} packages, {len(report.ignored)} ignored")

    unused = report.unused
    if not unused:
        console.print("[green]No unused packages found.[/]")
        return stats

    console.print(f"[bold yellow]Found {len(unused)} unused packages:[/]")
    for index, name in enumerate(unused, start=1):
        console.print(f"[red]  {index}. {escape(name)}[/]")

    if dry_run:
        console.print("[yellow]These packages would be removed.[/]")
        stats.removed = len(unused)
        return stats

    root = Path(report.root)
    if assume_yes or _is_yes(ask("Remove all unused packages? (y/n)")):
        for name in unused:
            if remove_package(console, root, report.package_manager, name):
                stats.removed += 1
        return stats

    for index, name in enumerate(unused):
        answer = ask(f"Remove [bold]{escape(name)}[/]? (y/n/s to skip remaining)").strip().lower()
        if _is_yes(answer):
            if remove_package(console, root, report.package_manager, name):
                stats.removed += 1
        elif answer in ("s", "skip"):
            stats.skipped += len(unused) - index
            break
        else:
            stats.skipped += 1
    return stats


def remove_package(console: Console, root: Path, package_manager: str, name: str) -> bool:
    command = [package_manager, UNINSTALL_COMMANDS.get(package_manager, "uninstall"), name]
    console.print(f"[yellow]Running: {escape(' '.join(command))}[/]")
    try:
        subprocess.run(command, cwd=root, check=True)
    except (subprocess.CalledProcessError, OSError) as exc:
        log.error("Removing %s failed: %s", name, exc)
        console.print(f"[red]Could not remove {escape(name)}[/]")
        return False
    console.print(f"[green]{escape(name)} removed[/]")
    return True


def _is_yes(answer: str) -> bool:
    return answer.strip().lower() in ("y", "yes")


def _verdict_table(report: Report) -> Table:
    table = Table(title="Verdicts")
    table.add_column("Package")
    table.add_column("Verdict")
    table.add_column("Reason")
    for verdict in report.verdicts.values():
        if verdict.keep:
            table.add_row(escape(verdict.name), "[green]KEEP[/]", escape(verdict.reason or ""))
        else:
            table.add_row(escape(verdict.name), "[red]UNUSED[/]", "")
    for name in report.ignored:
        table.add_row(escape(name), "[dim]IGNORED[/]", "")
    return table


def _print_summary(console: Console, stats: CleanupStats) -> None:
    console.print()
    console.print("[bold magenta]Summary[/]")
    console.print(f"[green]Removed: {stats.removed}[/]")
    console.print(f"[blue]Kept: {stats.kept}[/]")
    console.print(f"[yellow]Skipped: {stats.skipped}[/]")


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )


if __name__ == "__main__":
    raise SystemExit(main())
