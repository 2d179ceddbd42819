# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""CLI harness for running vulnerability analysis over one source file."""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler
from rich.style import Style
from rich.table import Table

from bughunter.bootstrap import BootstrapError, ResourceBootstrapper, default_resources
from bughunter.config import Config, ConfigError
from bughunter.diagnostics import Diagnostic, DiagnosticBuilder, DiagnosticCollection
from bughunter.engines import build_engine
from bughunter.extractor import ExtractionError, FunctionExtractor
from bughunter.inference import InferenceError
from bughunter.progress import RecordingProgress
from bughunter.session import SessionResult
from bughunter.supersession import SupersessionController
from bughunter.symbols import Document, StaticSymbolProvider, load_symbols
from bughunter.taxonomy import TaxonomyError, WeaknessLookup

logger = logging.getLogger(__name__)

TABLE_COLUMN_RATIOS: dict[str, int] = {
    "line": 1,
    "severity": 1,
    "code": 1,
    "message": 6,
    "href": 3,
}


def configure_logging(level: int = logging.INFO) -> None:
    """Configure application logging with Rich handler.

    Args:
        level: Logging severity threshold.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser instance.
    """
    parser = argparse.ArgumentParser(prog="bughunter")
    subparsers = parser.add_subparsers(dest="command", required=True)
    analyze_parser = subparsers.add_parser("analyze")
    analyze_parser.add_argument("--file", required=True, help="Source file to analyze.")
    analyze_parser.add_argument(
        "--symbols",
        required=True,
        help="JSON file listing function symbols (kind, start_line, end_line).",
    )
    analyze_parser.add_argument(
        "--settings", required=False, help="Optional JSON settings file."
    )
    analyze_parser.add_argument(
        "--mode",
        choices=("local", "onpremise", "cloud"),
        default=None,
        help="Inference mode.",
    )
    analyze_parser.add_argument(
        "--gpu", action="store_true", default=None, help="Use GPU inference."
    )
    analyze_parser.add_argument(
        "--url", required=False, help="Inference service base URL."
    )
    analyze_parser.add_argument(
        "--max-lines",
        type=int,
        default=None,
        help="Highest-scoring lines flagged per vulnerable function.",
    )
    analyze_parser.add_argument(
        "--detail",
        choices=("fluent", "verbose"),
        default=None,
        help="Diagnostic message detail level.",
    )
    analyze_parser.add_argument(
        "--resource-dir", required=False, help="Directory with models and CWE XML."
    )
    analyze_parser.add_argument(
        "--taxonomy", required=False, help="CWE catalog XML path override."
    )
    analyze_parser.add_argument(
        "--bootstrap",
        action="store_true",
        help="Download missing models and CWE catalog before analyzing.",
    )
    analyze_parser.add_argument(
        "--format",
        choices=("table", "json"),
        default="table",
        help="Output format.",
    )
    analyze_parser.add_argument(
        "--output",
        required=False,
        help="Optional output file path for raw JSON when --format json is used.",
    )
    return parser


def run(argv: list[str], stdout: TextIO, stderr: TextIO) -> int:
    """Run CLI command.

    Args:
        argv: CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit:
        logger.warning(f"Argument parsing failed (argv={argv})")
        return 2
    if args.command == "analyze":
        return _run_analyze(args=args, stdout=stdout, stderr=stderr)

    logger.warning(f"Unsupported command (command={args.command})")
    stderr.write(f"Unsupported command: {args.command}\n")
    return 2


def load_config(args: argparse.Namespace) -> Config:
    """Build configuration from the settings file and CLI overrides.

    Raises:
        ConfigError: If a setting is invalid.
        OSError: If the settings file cannot be read.
    """
    settings: dict[str, object] = {}
    if args.settings:
        payload = json.loads(Path(args.settings).read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ConfigError("Settings file must contain a JSON object.")
        settings = payload
    config = Config.from_mapping(settings) if settings else None
    overrides: dict[str, object] = {
        "inference_mode": args.mode,
        "gpu": args.gpu,
        "max_indicator_lines": args.max_lines,
        "detail_level": args.detail,
        "resource_dir": args.resource_dir,
    }
    mode = args.mode or (config.inference_mode if config else "local")
    if args.url:
        overrides["cloud_url" if mode == "cloud" else "on_premise_url"] = args.url
    if config is None:
        return Config.from_mapping(
            {key: value for key, value in overrides.items() if value is not None}
        )
    return config.merged(overrides)


def _run_analyze(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    """Run analyze command.

    Args:
        args: Parsed CLI arguments.
        stdout: Standard output stream.
        stderr: Standard error stream.

    Returns:
        Exit code.
    """
    source_path = Path(args.file)
    if not source_path.exists():
        logger.warning(f"Path does not exist (path={source_path})")
        stderr.write(f"Path does not exist: {source_path}\n")
        return 2
    if args.max_lines is not None and args.max_lines <= 0:
        logger.warning(f"Invalid max lines (max_lines={args.max_lines})")
        stderr.write("max-lines must be > 0\n")
        return 2

    try:
        config = load_config(args)
    except (ConfigError, OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Invalid settings (settings={args.settings} error={exc})")
        stderr.write(f"Invalid settings: {exc}\n")
        return 2
    try:
        symbols = load_symbols(Path(args.symbols))
    except (OSError, ValueError) as exc:
        logger.warning(f"Invalid symbols file (symbols={args.symbols} error={exc})")
        stderr.write(f"Invalid symbols file: {args.symbols}\n")
        return 2

    document = Document(
        uri=str(source_path.resolve()),
        text=source_path.read_text(encoding="utf-8"),
    )
    taxonomy_path = Path(args.taxonomy) if args.taxonomy else config.taxonomy_path
    progress = RecordingProgress()
    collection = DiagnosticCollection()
    controller = SupersessionController(
        extractor=FunctionExtractor(StaticSymbolProvider(symbols)),
        engine=build_engine(config),
        builder=DiagnosticBuilder(config, WeaknessLookup(taxonomy_path)),
        collection=collection,
        progress=progress,
    )

    try:
        result = asyncio.run(
            _analyze(
                controller=controller,
                document=document,
                bootstrapper=(
                    ResourceBootstrapper(default_resources(config), progress=progress)
                    if args.bootstrap
                    else None
                ),
            )
        )
    except (BootstrapError, ExtractionError, InferenceError, TaxonomyError) as exc:
        logger.warning(f"Analysis failed (path={source_path} error={exc})")
        stderr.write(f"Analysis failed: {exc}\n")
        return 1

    diagnostics = list(result.diagnostics)
    logger.info(
        f"Analysis finished (path={source_path} status={result.status} "
        f"diagnostics={len(diagnostics)})"
    )
    stages = [stage.value for stage, _ in progress.stages]
    if args.format == "json":
        if args.output:
            try:
                _write_json_file(
                    diagnostics=diagnostics,
                    stages=stages,
                    output_path=Path(args.output),
                )
            except OSError as exc:
                logger.warning(
                    f"Failed to write JSON output file (output_path={args.output} error={exc})"
                )
                stderr.write(f"Failed to write JSON output file: {args.output}\n")
                return 2
        else:
            _write_json(diagnostics=diagnostics, stages=stages, stdout=stdout)
    else:
        _write_table(diagnostics=diagnostics, source_path=source_path, stdout=stdout)
    return 0


async def _analyze(
    controller: SupersessionController,
    document: Document,
    bootstrapper: ResourceBootstrapper | None,
) -> SessionResult:
    if bootstrapper is not None:
        await bootstrapper.ensure_ready()
    session = controller.start(document)
    try:
        return await session.run()
    finally:
        controller.finish(session)


def _payload(diagnostics: list[Diagnostic], stages: list[str]) -> dict[str, object]:
    return {
        "diagnostics": [asdict(diagnostic) for diagnostic in diagnostics],
        "stages": stages,
    }


def _write_json(diagnostics: list[Diagnostic], stages: list[str], stdout: TextIO) -> None:
    """Write diagnostics in JSON format.

    Args:
        diagnostics: Built diagnostics.
        stages: Progress stages observed during the run.
        stdout: Standard output stream.
    """
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    console.print(
        json.dumps(_payload(diagnostics, stages), indent=2, sort_keys=True),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def _write_json_file(
    diagnostics: list[Diagnostic], stages: list[str], output_path: Path
) -> None:
    """Write raw JSON payload to an output file.

    Raises:
        OSError: If directory creation or file writing fails.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(_payload(diagnostics, stages), indent=2, sort_keys=True),
        encoding="utf-8",
    )


def _write_table(diagnostics: list[Diagnostic], source_path: Path, stdout: TextIO) -> None:
    """Write diagnostics as a table, one row per diagnostic.

    Args:
        diagnostics: Built diagnostics.
        source_path: Analyzed file.
        stdout: Standard output stream.
    """
    console = Console(file=stdout, force_terminal=False, color_system="truecolor")
    console.rule(f"{source_path.resolve()}", style=Style(color="cyan"), characters="-")
    if not diagnostics:
        console.print("No vulnerabilities detected.", markup=False, highlight=False)
        return
    table = Table(show_header=True, show_lines=True, expand=True)
    table.add_column("line", ratio=TABLE_COLUMN_RATIOS["line"], justify="right")
    table.add_column("severity", ratio=TABLE_COLUMN_RATIOS["severity"], overflow="fold")
    table.add_column("code", ratio=TABLE_COLUMN_RATIOS["code"], overflow="fold")
    table.add_column("message", ratio=TABLE_COLUMN_RATIOS["message"], overflow="fold")
    table.add_column("href", ratio=TABLE_COLUMN_RATIOS["href"], overflow="fold")
    for diagnostic in diagnostics:
        table.add_row(
            str(diagnostic.line + 1),
            diagnostic.severity,
            str(diagnostic.code),
            diagnostic.message,
            str(diagnostic.href),
        )
    console.print(table)


def main() -> None:
    """Run the CLI application and exit."""
    configure_logging()
    exit_code = run(sys.argv[1:], stdout=sys.stdout, stderr=sys.stderr)
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
