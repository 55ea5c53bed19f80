"""Command line interface for jar-flattener."""

import argparse
import logging
import pathlib
import sys

from rich.filesize import decimal as format_size

from jar_flattener.cache import clean_cache, default_cache_root, dir_size
from jar_flattener.config import (
    PROFILES,
    CliOptions,
    ProjectConfig,
    ResolvedConfig,
    load_project_config,
    resolve_config,
)
from jar_flattener.errors import BuildError, ConfigError
from jar_flattener.jdk import JdkCache
from jar_flattener.pipeline import run_build
from jar_flattener.target import SUPPORTED_TARGETS, current_target
from jar_flattener.toolchain import JavaToolchain


def _configure_logging(*, verbose: int, quiet: int) -> logging.Logger:
    """Configure the jar-flattener logger.

    Stage progress is the normal visible output, so logging stays at WARNING
    unless asked for.

    :param verbose: Verbosity count (0+).
    :param quiet: Quietness count (0+).
    :returns: Configured logger.
    """

    level: int = logging.WARNING
    if quiet >= 1:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose >= 1:
        level = logging.INFO

    logger: logging.Logger = logging.getLogger("jar_flattener")
    logger.setLevel(level)
    logger.propagate = False

    handler: logging.Handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers.clear()
    logger.addHandler(handler)
    return logger


def _project_dir(input_path: pathlib.Path) -> pathlib.Path:
    if input_path.suffix.lower() == ".jar":
        return pathlib.Path.cwd()
    return input_path


def _build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="jar-flattener",
        description="Bundle a Java app and a minimal Java runtime into one self-contained executable.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_build = subparsers.add_parser(
        "build",
        help="Build a self-contained executable.",
    )
    p_build.add_argument(
        "input",
        type=pathlib.Path,
        help="Project directory (Maven, Gradle, Leiningen or deps.edn) or a prebuilt .jar.",
    )
    p_build.add_argument(
        "-o",
        "--output",
        type=pathlib.Path,
        required=True,
        help="Output path for the executable.",
    )
    p_build.add_argument(
        "--java-version",
        type=int,
        default=None,
        help="Java feature version to bundle (default: 21, raised to what the jar needs).",
    )
    p_build.add_argument(
        "--target",
        type=str,
        default=None,
        help=(
            f"Target platform ({', '.join(t.name for t in SUPPORTED_TARGETS)}) "
            "or a triple such as aarch64-apple-darwin. Defaults to the host."
        ),
    )
    p_build.add_argument(
        "--jvm-arg",
        dest="jvm_args",
        action="append",
        default=[],
        metavar="ARG",
        help="Extra JVM argument baked into the launcher. Repeatable.",
    )
    p_build.add_argument(
        "--shrink",
        action="store_true",
        help="Drop build metadata and duplicate entries from the jar before packing.",
    )
    p_build.add_argument(
        "--profile",
        type=str,
        default=None,
        help=f"JVM profile ({', '.join(sorted(PROFILES))}). Default: server.",
    )
    p_build.add_argument(
        "--no-appcds",
        action="store_true",
        help="Do not generate an AppCDS archive.",
    )
    p_build.add_argument(
        "--crac",
        action="store_true",
        help="Create a CRaC checkpoint (Linux, CRaC-capable JDK). Skipped when unavailable.",
    )
    p_build.add_argument(
        "--compact-banner",
        action="store_true",
        help="Print a one-line banner when the executable starts.",
    )
    p_build.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging. Pass twice for debug detail.",
    )
    p_build.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Only log errors.",
    )

    subparsers.add_parser("clean", help="Remove all cached JDKs and extracted runtimes.")
    subparsers.add_parser("info", help="Show cache contents and the current platform.")
    return parser


def _cmd_build(ns: argparse.Namespace) -> int:
    logger: logging.Logger = _configure_logging(verbose=ns.verbose, quiet=ns.quiet)

    project: ProjectConfig | None = load_project_config(_project_dir(ns.input))
    if project is not None:
        logger.info("jar-flattener: using project file settings")

    config: ResolvedConfig = resolve_config(
        cli=CliOptions(
            input=ns.input,
            output=ns.output,
            java_version=ns.java_version,
            target=ns.target,
            jvm_args=tuple(ns.jvm_args),
            shrink=ns.shrink,
            profile=ns.profile,
            no_appcds=ns.no_appcds,
            crac=ns.crac,
            compact_banner=ns.compact_banner,
            verbose=ns.verbose,
        ),
        project=project,
    )

    # Spinner redraws would interleave with log lines.
    interactive: bool | None = False if config.verbose >= 1 else None
    run_build(config, toolchain=JavaToolchain(JdkCache()), interactive=interactive)
    return 0


def _cmd_clean() -> int:
    _configure_logging(verbose=0, quiet=0)
    freed: int | None = clean_cache(default_cache_root())
    if freed is None:
        print("Cache is already empty")
    else:
        print(f"Cleaned {format_size(freed)} of cached data")
    return 0


def _cmd_info() -> int:
    cache: JdkCache = JdkCache()
    root: pathlib.Path = cache.root

    print(f"Cache directory: {root}")
    if root.is_dir() is True:
        print(f"Cache size: {format_size(dir_size(root))}")
        entries = cache.entries()
        print(f"Cached items: {len(entries)}")
        for entry in entries:
            state: str = "" if entry.populated is True else " (incomplete)"
            print(f"  {entry.key}: {format_size(entry.size)}{state}")
    else:
        print(f"Cache size: {format_size(0)}")
        print("Cached items: 0")

    try:
        print(f"Current platform: {current_target()}")
    except ConfigError as e:
        print(f"Current platform: unsupported ({e})")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the jar-flattener CLI.

    :param argv: Optional argv list (excluding program name).
    :returns: Exit code.
    """

    ns = _build_parser().parse_args(argv)
    try:
        if ns.command == "build":
            return _cmd_build(ns)
        if ns.command == "clean":
            return _cmd_clean()
        if ns.command == "info":
            return _cmd_info()
    except BuildError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\ninterrupted", file=sys.stderr)
        return 130

    raise AssertionError(f"Unhandled command: {ns.command}")


if __name__ == "__main__":
    raise SystemExit(main())
