"""Build-system detection and uberjar builds.

Supported project types, checked in this order:

- Maven (``pom.xml``)
- Gradle (``build.gradle`` / ``build.gradle.kts``)
- Leiningen (``project.clj``)
- Clojure CLI with tools.build (``deps.edn``)
"""

import logging
import pathlib

from jar_flattener.errors import DetectionError, ToolError
from jar_flattener.process import BUILD_TIMEOUT, run_tool

logger: logging.Logger = logging.getLogger("jar_flattener.build")

MAVEN: str = "maven"
GRADLE: str = "gradle"
LEININGEN: str = "leiningen"
CLOJURE: str = "clojure"

_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (MAVEN, ("pom.xml",)),
    (GRADLE, ("build.gradle", "build.gradle.kts")),
    (LEININGEN, ("project.clj",)),
    (CLOJURE, ("deps.edn",)),
)

_OUTPUT_DIRS: dict[str, str] = {
    MAVEN: "target",
    GRADLE: "build/libs",
    LEININGEN: "target",
    CLOJURE: "target",
}

# Name fragments of jars that bundle their dependencies, best first.
_UBERJAR_HINTS: tuple[str, ...] = ("standalone", "jar-with-dependencies", "-all", "uber")
_NOT_RUNNABLE_SUFFIXES: tuple[str, ...] = ("-sources.jar", "-javadoc.jar", "-tests.jar", "-plain.jar")


def detect_build_system(project_dir: pathlib.Path) -> str:
    """Detect the build system of a project directory.

    :param project_dir: Project root.
    :returns: One of ``maven``, ``gradle``, ``leiningen``, ``clojure``.
    :raises DetectionError: If the input is not a directory or no marker file is found.
    """

    if project_dir.is_dir() is False:
        raise DetectionError(f"Input is neither a .jar file nor a project directory: {project_dir}")

    for system, markers in _MARKERS:
        for marker in markers:
            if (project_dir / marker).is_file() is True:
                logger.info(f"jar-flattener: detected {system} project ({marker})")
                return system

    raise DetectionError(
        f"No supported build system found in {project_dir}. "
        "Expected pom.xml, build.gradle(.kts), project.clj or deps.edn."
    )


def build_command(system: str, project_dir: pathlib.Path) -> list[str]:
    """Return the command that produces an uberjar for ``system``.

    :param system: Build system name.
    :param project_dir: Project root (wrapper scripts are preferred when present).
    :returns: Command argv.
    """

    if system == MAVEN:
        mvnw: pathlib.Path = project_dir / "mvnw"
        exe: str = str(mvnw) if mvnw.is_file() is True else "mvn"
        return [exe, "-q", "-DskipTests", "package"]

    if system == GRADLE:
        gradlew: pathlib.Path = project_dir / "gradlew"
        exe = str(gradlew) if gradlew.is_file() is True else "gradle"
        task: str = "shadowJar" if _uses_shadow_plugin(project_dir) is True else "build"
        return [exe, "-q", task, "-x", "test"]

    if system == LEININGEN:
        return ["lein", "uberjar"]

    if system == CLOJURE:
        return ["clojure", "-T:build", "uber"]

    raise DetectionError(f"Unknown build system: {system!r}")


def build_command_description(system: str, project_dir: pathlib.Path) -> str:
    """Short human readable description of the build command."""

    cmd: list[str] = build_command(system, project_dir)
    return " ".join([pathlib.Path(cmd[0]).name, *cmd[1:]])


def _uses_shadow_plugin(project_dir: pathlib.Path) -> bool:
    for name in ("build.gradle", "build.gradle.kts"):
        path: pathlib.Path = project_dir / name
        if path.is_file() is True and "shadow" in path.read_text(encoding="utf-8", errors="replace"):
            return True
    return False


def build_uberjar(project_dir: pathlib.Path, system: str) -> pathlib.Path:
    """Build the project and locate the resulting uberjar.

    :param project_dir: Project root.
    :param system: Detected build system.
    :returns: Path to the built jar.
    :raises ToolError: If the build fails or produces no jar.
    """

    cmd: list[str] = build_command(system, project_dir)
    logger.info(f"jar-flattener: building with {' '.join(cmd)}")
    run_tool(cmd, timeout=BUILD_TIMEOUT, cwd=project_dir)

    out_dir: pathlib.Path = project_dir / _OUTPUT_DIRS[system]
    return find_uberjar(out_dir)


def find_uberjar(out_dir: pathlib.Path) -> pathlib.Path:
    """Pick the uberjar among a build's output jars.

    Jars whose names suggest bundled dependencies win; otherwise the largest
    jar is taken.

    :param out_dir: Build output directory (searched recursively).
    :returns: Uberjar path.
    :raises ToolError: If no candidate jar exists.
    """

    if out_dir.is_dir() is False:
        raise ToolError(f"Build finished but output directory is missing: {out_dir}")

    candidates: list[pathlib.Path] = []
    for p in sorted(out_dir.rglob("*.jar")):
        name: str = p.name
        if name.startswith("original-") is True:
            continue
        if name.endswith(_NOT_RUNNABLE_SUFFIXES) is True:
            continue
        if p.is_file() is True:
            candidates.append(p)

    if len(candidates) == 0:
        raise ToolError(f"Build finished but no jar was found under {out_dir}")

    def rank(p: pathlib.Path) -> tuple[int, int, str]:
        hinted: int = 1 if any(h in p.stem for h in _UBERJAR_HINTS) else 0
        return (hinted, p.stat().st_size, p.name)

    best: pathlib.Path = max(candidates, key=rank)
    if logger.isEnabledFor(logging.DEBUG) is True:
        logger.debug(f"jar-flattener: uberjar candidates={[c.name for c in candidates]} picked={best.name}")
    return best
