"""External tool capabilities used by the pipeline.

:class:`JavaToolchain` groups every external step behind one object so the
orchestrator never calls subprocess helpers directly. Tests (or alternate
backends) pass a different object with the same methods.
"""

import logging
import pathlib

from jar_flattener.build import build_command_description, build_uberjar, detect_build_system
from jar_flattener.crac import create_checkpoint
from jar_flattener.jdk import JdkCache
from jar_flattener.jlink import create_runtime, detect_modules
from jar_flattener.shrink import ShrinkResult, shrink_jar
from jar_flattener.target import Target, current_target

logger: logging.Logger = logging.getLogger("jar_flattener.toolchain")


class JavaToolchain:
    """Default toolchain backed by build tools, JDK binaries and the JDK cache."""

    def __init__(self, jdk_cache: JdkCache) -> None:
        self.jdk_cache: JdkCache = jdk_cache

    def detect(self, project_dir: pathlib.Path) -> str:
        return detect_build_system(project_dir)

    def describe_build(self, system: str, project_dir: pathlib.Path) -> str:
        return build_command_description(system, project_dir)

    def build(self, project_dir: pathlib.Path, system: str) -> pathlib.Path:
        return build_uberjar(project_dir, system)

    def shrink(self, jar_path: pathlib.Path, work_dir: pathlib.Path) -> ShrinkResult:
        return shrink_jar(jar_path, work_dir)

    def fetch_runtime(self, version: int, target: Target) -> pathlib.Path:
        """Ensure the target JDK, and the host JDK used to run jdeps/jlink, are cached."""

        jdk_path: pathlib.Path = self.jdk_cache.ensure(version, target)
        if target != current_target():
            self.jdk_cache.host_jdk(version)
        return jdk_path

    def _host_jdk(self, version: int, jdk_path: pathlib.Path, target: Target) -> pathlib.Path:
        if target == current_target():
            return jdk_path
        return self.jdk_cache.host_jdk(version)

    def analyze(self, jdk_path: pathlib.Path, jar_path: pathlib.Path, *, version: int, target: Target) -> list[str]:
        host_jdk: pathlib.Path = self._host_jdk(version, jdk_path, target)
        return detect_modules(host_jdk, jar_path, java_version=version)

    def minimize(
        self,
        jdk_path: pathlib.Path,
        modules: list[str],
        dest_dir: pathlib.Path,
        *,
        version: int,
        target: Target,
    ) -> pathlib.Path:
        host_jdk: pathlib.Path = self._host_jdk(version, jdk_path, target)
        jmods: pathlib.Path | None = None
        if host_jdk != jdk_path:
            # Link the target's modules with the host's jlink.
            jmods = jdk_path / "jmods"
            logger.info(f"jar-flattener: cross-linking for {target} with host jlink")
        return create_runtime(host_jdk, modules, dest_dir, java_version=version, jmods_path=jmods)

    def checkpoint(
        self,
        runtime_dir: pathlib.Path,
        jdk_path: pathlib.Path,
        jar_path: pathlib.Path,
        work_dir: pathlib.Path,
        *,
        target: Target,
    ) -> pathlib.Path:
        return create_checkpoint(runtime_dir, jdk_path, jar_path, work_dir, target=target)
