#!/usr/bin/env python3
"""
livepreview CLI - bundle a project directory the way the preview surface does

Usage:
    livepreview build ./my-app                   # Bundle and report errors
    livepreview build ./my-app --html out.html   # Also write the preview document
    livepreview build ./my-app --fix             # Run the ghost-fix loop first
    livepreview classify "TypeError: x is not a function"
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from livepreview.core.config import settings
from livepreview.core.logging_config import set_project_id
from livepreview.services.bundler import bundle
from livepreview.services.bundler.entry import BUNDLEABLE_EXT
from livepreview.services.bundler.models import BundleResult
from livepreview.services.ghost_fix import GhostFixEngine, GhostFixReport, find_target_file
from livepreview.services.ghost_fix.classifier import ClassifiedError, classify, classify_many, label
from livepreview.services.ghost_fix.strategies import apply_strategy
from livepreview.services.preview import render_bundle


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="livepreview",
        description="Bundle AI-generated React projects for live preview and diagnose build errors",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    build_parser = subparsers.add_parser("build", help="Bundle a project directory")
    build_parser.add_argument("directory", help="Project root")
    build_parser.add_argument("--html", metavar="FILE", help="Write the preview HTML document here")
    build_parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    build_parser.add_argument(
        "--fix",
        action="store_true",
        help="Run the ghost-fix loop before reporting (AI fixes need ANTHROPIC_API_KEY)"
    )

    classify_parser = subparsers.add_parser("classify", help="Classify an error message")
    classify_parser.add_argument("text", help="Error text, e.g. \"X is not defined\"")

    return parser


def load_source_map(root: Path) -> Dict[str, str]:
    """Read bundleable text files under root into a logical-path map"""
    skip = set(settings.PREVIEW_SKIP_DIRS)
    files: Dict[str, str] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root)
        if any(part in skip for part in rel.parts):
            continue
        if not path.is_file() or not path.name.endswith(BUNDLEABLE_EXT):
            continue
        try:
            files[rel.as_posix()] = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue
    return files


def _classification_table(title: str, errors: List[ClassifiedError]) -> Table:
    table = Table(title=title)
    table.add_column("Type", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Location")
    table.add_column("Message")
    table.add_column("Suggestion", style="dim")
    for error in errors:
        location = f"{error.file}:{error.line}:{error.column}" if error.file else ""
        table.add_row(label(error.type), f"{error.confidence:.2f}", location, error.message, error.suggestion)
    return table


def _result_to_dict(result: BundleResult, classified: List[ClassifiedError]) -> Dict:
    return {
        "success": result.success,
        "entry_point": result.entry_point,
        "externals": list(result.externals),
        "warnings": list(result.warnings),
        "errors": result.error_texts(),
        "classified": [
            {
                "type": c.type.value,
                "message": c.message,
                "confidence": c.confidence,
                "file": c.file,
                "line": c.line,
                "column": c.column,
                "suggestion": c.suggestion,
            }
            for c in classified
        ],
    }


def print_result(console: Console, result: BundleResult, files: Dict[str, str]) -> List[ClassifiedError]:
    if result.success:
        console.print(f"[green]✓ Bundled[/green] entry [bold]{result.entry_point}[/bold] "
                      f"({len(result.code)} chars JS, {len(result.css)} chars CSS)")
        if result.externals:
            console.print(f"[dim]External packages: {', '.join(result.externals)}[/dim]")
        for warning in result.warnings:
            console.print(f"[yellow]⚠ {warning}[/yellow]")
        return []

    console.print(f"[red]✗ Build failed[/red] ({len(result.errors)} error(s))")
    classified = classify_many(result.error_texts())
    console.print(_classification_table("Build errors", classified))

    fixes = Table(title="Fix strategies")
    fixes.add_column("Type", style="cyan")
    fixes.add_column("Kind")
    fixes.add_column("Description")
    for error in classified:
        target = find_target_file(error, files)
        source = files[target] if target else ""
        fix = apply_strategy(error, source)
        if not fix.success:
            kind = "-"
        else:
            kind = "patch" if fix.fixed_code is not None else "AI directive"
        fixes.add_row(label(error.type), kind, fix.description)
    console.print(fixes)
    return classified


def print_fix_report(console: Console, report: GhostFixReport) -> None:
    status = "[green]fixed[/green]" if report.success else "[red]not fixed[/red]"
    console.print(f"Ghost fix: {status} after {report.rounds} round(s) in {report.total_time_ms}ms")
    for task in report.tasks:
        console.print(f"  [dim]{task.id}[/dim] {task.status.value} "
                      f"({task.attempts} attempt(s)) {task.error.message}")
    if report.fixed_files:
        console.print(f"  Repaired: {', '.join(report.fixed_files)}")


async def run_build(args: argparse.Namespace, console: Console) -> int:
    root = Path(args.directory)
    if not root.is_dir():
        console.print(f"[red]✗ Not a directory: {root}[/red]")
        return 1

    set_project_id(root.resolve().name)
    files = load_source_map(root)
    report: Optional[GhostFixReport] = None
    if args.fix:
        report = await GhostFixEngine().run(files)
        files = report.files
        result = report.result
    else:
        result = await bundle(files)

    if args.json:
        classified = [] if result.success else classify_many(result.error_texts())
        payload = _result_to_dict(result, classified)
        if report is not None:
            payload["fix"] = {
                "success": report.success,
                "rounds": report.rounds,
                "fixed_files": report.fixed_files,
            }
        console.print_json(json.dumps(payload))
    else:
        if report is not None:
            print_fix_report(console, report)
        print_result(console, result, files)

    if result.success and args.html:
        Path(args.html).write_text(render_bundle(result), encoding="utf-8")
        if not args.json:
            console.print(f"[green]✓ Wrote[/green] {args.html}")

    return 0 if result.success else 1


def run_classify(args: argparse.Namespace, console: Console) -> int:
    error = classify(args.text)
    console.print(_classification_table("Classification", [error]))
    return 0


def main():
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args()
    console = Console()

    if args.command == "build":
        try:
            sys.exit(asyncio.run(run_build(args, console)))
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            sys.exit(1)
    elif args.command == "classify":
        sys.exit(run_classify(args, console))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
