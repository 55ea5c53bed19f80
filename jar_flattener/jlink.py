"""Module analysis (``jdeps``) and minimal runtime linking (``jlink``)."""

import logging
import pathlib
import re

from jar_flattener.errors import AnalysisError, MinimizationError
from jar_flattener.process import JDEPS_TIMEOUT, JLINK_TIMEOUT, run_tool

logger: logging.Logger = logging.getLogger("jar_flattener.jlink")

_MODULE_NAME_RE: re.Pattern[str] = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)*$")

BASE_MODULE: str = "java.base"


def _tool(jdk_path: pathlib.Path, name: str) -> str:
    return str(jdk_path / "bin" / name)


def parse_module_list(output: str) -> list[str]:
    """Parse ``jdeps --print-module-deps`` output.

    jdeps may print warnings before the module list; the list is the last
    non-empty line.

    :param output: jdeps standard output.
    :returns: Sorted, deduplicated module names (at least ``java.base``).
    :raises AnalysisError: If the last line is not a module list.
    """

    lines: list[str] = [line.strip() for line in output.splitlines() if len(line.strip()) > 0]
    if len(lines) == 0:
        return [BASE_MODULE]

    modules: set[str] = set()
    for name in lines[-1].split(","):
        name = name.strip()
        if len(name) == 0:
            continue
        if _MODULE_NAME_RE.match(name) is None:
            raise AnalysisError(f"Unexpected jdeps output: {lines[-1]!r}")
        modules.add(name)

    modules.add(BASE_MODULE)
    return sorted(modules)


def detect_modules(jdk_path: pathlib.Path, jar_path: pathlib.Path, *, java_version: int) -> list[str]:
    """Find the JDK modules a jar needs.

    :param jdk_path: JDK home providing ``jdeps``.
    :param jar_path: Application jar.
    :param java_version: Release used to resolve multi-release jars.
    :returns: Sorted module names.
    :raises AnalysisError: If jdeps fails.
    """

    result = run_tool(
        [
            _tool(jdk_path, "jdeps"),
            "--print-module-deps",
            "--ignore-missing-deps",
            "--multi-release",
            str(java_version),
            str(jar_path),
        ],
        timeout=JDEPS_TIMEOUT,
        error_cls=AnalysisError,
    )
    modules: list[str] = parse_module_list(result.stdout)
    logger.info(f"jar-flattener: modules={','.join(modules)}")
    return modules


def jlink_compress_flag(java_version: int) -> str:
    """``--compress`` value understood by the given JDK's jlink."""

    # Numeric levels are deprecated from JDK 21 on.
    if java_version >= 21:
        return "--compress=zip-6"
    return "--compress=2"


def create_runtime(
    jdk_path: pathlib.Path,
    modules: list[str],
    dest_dir: pathlib.Path,
    *,
    java_version: int,
    jmods_path: pathlib.Path | None = None,
) -> pathlib.Path:
    """Link a minimal runtime containing ``modules``.

    :param jdk_path: JDK home providing ``jlink`` (must run on this host).
    :param modules: Modules to include.
    :param dest_dir: Scratch directory; the runtime is written to ``dest_dir/runtime``.
    :param java_version: JDK feature version (selects jlink flags).
    :param jmods_path: ``jmods`` of the target JDK when it differs from ``jdk_path``.
    :returns: Runtime directory.
    :raises MinimizationError: If jlink fails.
    """

    if len(modules) == 0:
        raise MinimizationError("No modules to link")

    out: pathlib.Path = dest_dir / "runtime"
    if out.exists() is True:
        raise MinimizationError(f"Runtime output already exists: {out}")

    cmd: list[str] = [_tool(jdk_path, "jlink")]
    if jmods_path is not None:
        if jmods_path.is_dir() is False:
            raise MinimizationError(f"Target JDK has no jmods directory: {jmods_path}")
        cmd.extend(["--module-path", str(jmods_path)])
    cmd.extend(
        [
            "--add-modules",
            ",".join(sorted(set(modules))),
            "--strip-debug",
            "--no-header-files",
            "--no-man-pages",
            jlink_compress_flag(java_version),
            "--output",
            str(out),
        ]
    )
    run_tool(cmd, timeout=JLINK_TIMEOUT, error_cls=MinimizationError)

    if (out / "bin").is_dir() is False:
        raise MinimizationError(f"jlink did not produce a runtime at {out}")
    return out
