"""Command line interface for s3concat."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError
from rich.logging import RichHandler

from . import __version__
from .cli_progress import ConcatProgressDisplay, render_configuration_summary
from .exceptions import ConfigurationError
from .models import ConcatConfig
from .orchestrator import ConcatOrchestrator, PatternMatcher
from .services import S3StorageGateway


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if not debug and not log_level and not env_level:
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level).upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # botocore is very chatty below WARNING
    if level < logging.WARNING and not debug:
        for name in ("botocore", "aiobotocore", "boto3", "urllib3"):
            logging.getLogger(name).setLevel(logging.WARNING)
    return logging.getLevelName(level)


def _parse_bucket(value: str) -> Tuple[str, Optional[str]]:
    """
    Split ``[scheme://]bucket[/prefix]`` into (bucket, prefix).

    Trailing slashes are trimmed from the prefix.
    """
    raw = value.strip()
    if "://" in raw:
        raw = raw.split("://", 1)[1]
    bucket, _, prefix = raw.partition("/")
    if not bucket:
        raise ConfigurationError(f"invalid bucket: {value!r}")
    prefix = prefix.rstrip("/")
    return bucket, prefix or None


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _resolve_max_parallel() -> int:
    raw = os.getenv("S3CONCAT_MAX_PARALLEL")
    if not raw:
        return 1
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"S3CONCAT_MAX_PARALLEL must be an integer: {raw!r}") from exc
    if value < 1:
        raise ConfigurationError("S3CONCAT_MAX_PARALLEL must be at least 1")
    return value


def _build_gateway() -> S3StorageGateway:
    return S3StorageGateway()


async def _run_concat(
    bucket: str,
    prefix: Optional[str],
    matcher: PatternMatcher,
    config: ConcatConfig,
    quiet: bool,
) -> int:
    display = ConcatProgressDisplay(quiet=quiet)

    async with _build_gateway() as gateway:
        orchestrator = ConcatOrchestrator(
            gateway,
            bucket,
            matcher,
            prefix=prefix,
            config=config,
        )
        display.attach(orchestrator)
        report = await orchestrator.run()

    display.on_finish(report)
    return 0 if report.success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="s3-concat",
        description="Concatenate Amazon S3 files remotely using flexible patterns.",
        epilog=(
            "Credentials and region are resolved from the standard AWS "
            "environment/config chain."
        ),
    )
    parser.add_argument("bucket", help="An S3 bucket prefix to work within")
    parser.add_argument("source", help="A source pattern to use to locate files")
    parser.add_argument("target", help="A target pattern to use to concatenate files into")
    parser.add_argument(
        "-c",
        "--cleanup",
        action="store_true",
        help="Removes source files after concatenation",
    )
    parser.add_argument(
        "-d",
        "--dry-run",
        action="store_true",
        help="Only print out the calculated writes",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only prints errors during execution",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"s3-concat {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        parser.print_help(sys.stderr)
        return 2
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(debug=args.debug, log_level=args.log_level)

    try:
        bucket, prefix = _parse_bucket(args.bucket)
        matcher = PatternMatcher(args.source, args.target)
        config = ConcatConfig(
            cleanup=args.cleanup,
            dry_run=args.dry_run,
            max_parallel=_resolve_max_parallel(),
        )
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if not args.quiet:
        render_configuration_summary(
            {
                "Bucket": bucket,
                "Prefix": prefix or "(none)",
                "Source": matcher.source,
                "Target": matcher.target,
                "Cleanup": "yes" if config.cleanup else "no",
                "Dry Run": "yes" if config.dry_run else "no",
                "Parallel Copies": config.max_parallel,
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        return asyncio.run(
            _run_concat(
                bucket=bucket,
                prefix=prefix,
                matcher=matcher,
                config=config,
                quiet=args.quiet,
            )
        )
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130
    except BotoCoreError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
