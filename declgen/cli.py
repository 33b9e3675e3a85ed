"""CLI entrypoints for declgen commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Sequence

from .config import CONFIG_FILENAME, STRATEGY_NAMES, ConfigError, GeneratorConfig, load_config
from .engine import GenerationEngine, GenerationResult
from .logging import configure_logging, get_logger
from .models import SourceUnit

_SOURCE_SUFFIX = ".swift"
_GENERATED_SUFFIX = ".generated.swift"


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="declgen",
        description="Generate mocks, stubs, mappers, registrations and features from annotated Swift declarations.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Run every enabled strategy over the given Swift sources.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    generate_parser.add_argument(
        "paths",
        nargs="*",
        default=["."],
        help="Swift files or directories to scan (defaults to current directory).",
    )
    generate_parser.add_argument(
        "--config",
        default=None,
        help=f"Path to {CONFIG_FILENAME} (defaults to the current directory).",
    )
    generate_parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory receiving the generated units (overrides output_dir).",
    )
    generate_parser.add_argument(
        "--strategy",
        action="append",
        choices=STRATEGY_NAMES,
        default=None,
        help="Restrict the run to this strategy; may be given more than once.",
    )
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print generated units instead of writing them.",
    )
    return parser


def discover_sources(paths: Sequence[str]) -> List[Path]:
    """Return the Swift files named by ``paths``, skipping generated output, sorted."""
    found = set()
    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            candidates = path.rglob(f"*{_SOURCE_SUFFIX}")
        elif path.is_file():
            candidates = [path]
        else:
            raise FileNotFoundError(f"No such file or directory: {raw}")
        for candidate in candidates:
            if candidate.name.endswith(_GENERATED_SUFFIX):
                continue
            found.add(candidate.resolve())
    return sorted(found)


def read_units(paths: Sequence[Path]) -> List[SourceUnit]:
    units: List[SourceUnit] = []
    for path in paths:
        units.append(SourceUnit(name=_relativize(path), text=path.read_text(encoding="utf-8")))
    return units


def write_outputs(result: GenerationResult, output_dir: Path) -> List[Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for name, text in result.outputs.items():
        target = output_dir / name
        target.write_text(text, encoding="utf-8")
        written.append(target)
    return written


def _load(args: argparse.Namespace) -> GeneratorConfig:
    config_path = Path(args.config) if args.config else Path.cwd()
    config = load_config(config_path)
    if args.strategy:
        config.strategies = [name for name in STRATEGY_NAMES if name in set(args.strategy)]
    if args.output_dir:
        config.output_dir = Path(args.output_dir).expanduser().resolve()
    return config


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for declgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))
    logger = get_logger("cli")

    if args.command == "generate":
        try:
            config = _load(args)
            sources = discover_sources(args.paths)
            units = read_units(sources)
        except (ConfigError, FileNotFoundError) as exc:
            parser.exit(1, f"{exc}\n")
        logger.debug("Discovered %d Swift source(s)", len(sources))

        result = GenerationEngine(config).run(units)

        if args.dry_run:
            for name, text in result.outputs.items():
                print(f"// ==== {name}")
                print(text, end="")
        else:
            output_dir = config.output_dir or (config.root or Path.cwd())
            for path in write_outputs(result, output_dir):
                print(f"Wrote {_relativize(path)}")

        if not result.ok:
            lines = "".join(f"{error}\n" for error in result.errors)
            parser.exit(
                result.exit_code,
                f"declgen generate finished with {len(result.errors)} error(s):\n{lines}",
            )
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
