"""CLI entrypoint for stackprobe."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ProbeConfig
from .engine import build_engine
from .errors import CatalogError, ConfigError
from .findings import Findings
from .logging import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    # -v is accepted before and after the subcommand; the subcommand copy only
    # sets the flag when given so it cannot reset a leading -v.
    verbosity = argparse.ArgumentParser(add_help=False)
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Log every matched indicator and skipped file, tagged with its root and category.",
    )

    parser = argparse.ArgumentParser(
        prog="stackprobe",
        description="Infer the technology stack and architecture of project trees.",
        parents=[verbosity],
    )
    parser.set_defaults(verbose=False)
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser(
        "scan",
        help="Scan one or more project roots and summarize the findings.",
        parents=[verbosity],
    )
    scan_parser.add_argument(
        "paths",
        nargs="*",
        default=["."],
        help="Project roots to scan; the first one wins ties (defaults to current directory).",
    )
    scan_parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Override the directory depth explored below each root.",
    )
    scan_parser.add_argument(
        "--catalog",
        default=None,
        help="YAML file with extra indicators appended to the built-in catalog.",
    )
    scan_parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log output to this file.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for stackprobe commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=getattr(args, "log_file", None))

    if args.command == "scan":
        try:
            engine = build_engine(args.paths[0], args.catalog)
        except (CatalogError, ConfigError) as exc:
            parser.exit(1, f"stackprobe scan failed: {exc}\n")
        if args.max_depth is not None:
            base = engine.config or ProbeConfig(root=Path(args.paths[0]))
            base.max_depth = max(args.max_depth, 0)
            engine.config = base
        findings = engine.scan(args.paths)
        print(_summarize(findings))
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _summarize(findings: Findings) -> str:
    lines = []
    for category, finding in findings:
        label = f"{finding.technology} {finding.version}" if finding.version else finding.technology
        lines.append(f"{category.value}: {label} ({finding.confidence:.0%})")
    for report in findings.structure:
        expected = len(report.present) + len(report.missing)
        line = f"{report.technology} layers: {len(report.present)}/{expected}"
        if report.missing:
            line += f" (missing: {', '.join(report.missing)})"
        if report.patterns:
            line += f"; patterns: {', '.join(report.patterns)}"
        lines.append(line)
    lines.append(f"dependencies: {len(findings.dependencies)}")
    lines.append(f"scripts: {len(findings.scripts)}")
    lines.append(f"key files: {len(findings.key_files)}")
    return "\n".join(lines)


if __name__ == "__main__":
    main(sys.argv[1:])
