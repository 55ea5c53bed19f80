"""Build orchestration.

:func:`run_build` walks the stage list from :mod:`jar_flattener.stages` in
order. Every stage is fatal except the checkpoint stage, whose failure is shown
as ``skipped (<reason>)`` and leaves the build without checkpoint data.
Scratch files live in one temporary directory that is removed however the run
ends (success, error or Ctrl-C).
"""

from collections.abc import Callable
from dataclasses import dataclass, field
import logging
import pathlib
import tempfile
from typing import Any, TextIO

from rich.filesize import decimal as format_size

from jar_flattener import stages as st
from jar_flattener.config import ResolvedConfig
from jar_flattener.errors import BuildError
from jar_flattener.jdk import JdkCache
from jar_flattener.pack import PackOptions, PackResult, create_binary
from jar_flattener.progress import Pipeline, StageHandle
from jar_flattener.stages import Stage, build_stage_list
from jar_flattener.toolchain import JavaToolchain
from jar_flattener.validate import resolve_java_version

logger: logging.Logger = logging.getLogger("jar_flattener.pipeline")


@dataclass(slots=True)
class BuildState:
    """Values produced by stages and consumed by later ones."""

    work_dir: pathlib.Path
    build_system: str | None = None
    jar_path: pathlib.Path | None = None
    java_version: int | None = None
    jdk_path: pathlib.Path | None = None
    modules: list[str] = field(default_factory=list)
    runtime_path: pathlib.Path | None = None
    crac_path: pathlib.Path | None = None
    result: PackResult | None = None
    completed: list[str] = field(default_factory=list)

    def require(self, name: str) -> Any:
        """Return a value an earlier stage produced.

        :param name: Field name.
        :raises BuildError: If no earlier stage set it.
        """

        value = getattr(self, name)
        if value is None:
            raise BuildError(f"{name} is not available yet; stages ran out of order")
        return value


class BuildPipeline:
    """Runs one build for a resolved configuration."""

    def __init__(
        self,
        config: ResolvedConfig,
        *,
        toolchain: JavaToolchain | None = None,
        stream: TextIO | None = None,
        interactive: bool | None = None,
    ) -> None:
        self.config: ResolvedConfig = config
        self.toolchain: JavaToolchain = toolchain if toolchain is not None else JavaToolchain(JdkCache())
        self.stages: tuple[Stage, ...] = build_stage_list(config)
        self.progress: Pipeline = Pipeline(len(self.stages), stream=stream, interactive=interactive)
        self._handlers: dict[str, Callable[[BuildState], str]] = {
            st.ARCHIVE: self._use_prebuilt_jar,
            st.DETECT: self._detect,
            st.BUILD: self._build,
            st.SHRINK: self._shrink,
            st.RUNTIME_FETCH: self._fetch_runtime,
            st.MODULE_ANALYSIS: self._analyze,
            st.MINIMIZATION: self._minimize,
            st.CHECKPOINT: self._checkpoint,
            st.PACKING: self._pack,
        }

    def run(self) -> BuildState:
        """Run every stage.

        :returns: Final build state (``result`` holds the written executable).
        :raises BuildError: On the first fatal stage failure, tagged with the stage label.
        """

        logger.info(f"jar-flattener: input={self.config.input}")
        logger.info(f"jar-flattener: output={self.config.output}")
        logger.info(f"jar-flattener: target={self.config.target} profile={self.config.profile.name}")

        with tempfile.TemporaryDirectory(prefix="jar_flattener_build_") as td:
            state: BuildState = BuildState(work_dir=pathlib.Path(td))
            for stage in self.stages:
                if stage.key == st.RUNTIME_FETCH:
                    self._resolve_java_version(state)
                self._run_stage(stage, state)

        if state.result is not None:
            self.progress.finish(str(state.result.path))
        return state

    def _label(self, stage: Stage, state: BuildState) -> str:
        if stage.key == st.BUILD and state.build_system is not None:
            desc: str = self.toolchain.describe_build(state.build_system, self.config.input)
            return f"{stage.title} ({desc})"
        if stage.key == st.RUNTIME_FETCH:
            return f"{stage.title} {state.java_version}"
        return stage.title

    def _run_stage(self, stage: Stage, state: BuildState) -> None:
        label: str = self._label(stage, state)
        handle: StageHandle = self.progress.start_stage(label)
        try:
            result: str = self._handlers[stage.key](state)
        except (BuildError, OSError) as e:
            if stage.optional is True:
                logger.info(f"jar-flattener: {label} skipped: {e}")
                self.progress.skip_stage(handle, str(e))
                return
            self.progress.fail_stage(handle)
            error: BuildError = e if isinstance(e, BuildError) else BuildError(str(e))
            error.stage = label
            if error is e:
                raise
            raise error from e
        except BaseException:
            self.progress.fail_stage(handle)
            raise
        self.progress.finish_stage(handle, result)
        state.completed.append(stage.key)

    def _resolve_java_version(self, state: BuildState) -> None:
        state.java_version = resolve_java_version(
            state.require("jar_path"),
            self.config.java_version,
            self.config.java_version_explicit,
        )

    def _use_prebuilt_jar(self, state: BuildState) -> str:
        jar: pathlib.Path = self.config.input
        if jar.is_file() is False:
            raise BuildError(f"JAR does not exist: {jar}")
        state.jar_path = jar
        return f"JAR: {jar}"

    def _detect(self, state: BuildState) -> str:
        state.build_system = self.toolchain.detect(self.config.input)
        return state.build_system

    def _build(self, state: BuildState) -> str:
        state.jar_path = self.toolchain.build(self.config.input, state.require("build_system"))
        return state.jar_path.name

    def _shrink(self, state: BuildState) -> str:
        result = self.toolchain.shrink(state.require("jar_path"), state.work_dir)
        state.jar_path = result.jar_path
        if result.shrunk_size < result.original_size:
            reduction: int = result.original_size - result.shrunk_size
            pct: float = reduction / result.original_size * 100.0
            return (
                f"{format_size(result.original_size)} -> {format_size(result.shrunk_size)} (-{pct:.0f}%)"
            )
        return "no reduction (using original)"

    def _fetch_runtime(self, state: BuildState) -> str:
        state.jdk_path = self.toolchain.fetch_runtime(state.require("java_version"), self.config.target)
        return "ready"

    def _analyze(self, state: BuildState) -> str:
        state.modules = self.toolchain.analyze(
            state.require("jdk_path"),
            state.require("jar_path"),
            version=state.require("java_version"),
            target=self.config.target,
        )
        return f"{len(state.modules)} modules"

    def _minimize(self, state: BuildState) -> str:
        state.runtime_path = self.toolchain.minimize(
            state.require("jdk_path"),
            state.modules,
            state.work_dir,
            version=state.require("java_version"),
            target=self.config.target,
        )
        return "done"

    def _checkpoint(self, state: BuildState) -> str:
        crac_path: pathlib.Path = self.toolchain.checkpoint(
            state.require("runtime_path"),
            state.require("jdk_path"),
            state.require("jar_path"),
            state.work_dir,
            target=self.config.target,
        )
        state.crac_path = crac_path
        size: int = sum(p.stat().st_size for p in crac_path.rglob("*") if p.is_file())
        return f"{format_size(size)} checkpoint"

    def _pack(self, state: BuildState) -> str:
        state.result = create_binary(
            PackOptions(
                runtime_dir=state.require("runtime_path"),
                jar_path=state.require("jar_path"),
                crac_path=state.crac_path,
                output=self.config.output,
                jvm_args=self.config.jvm_args,
                profile=self.config.profile,
                appcds=self.config.appcds,
                java_version=state.require("java_version"),
                compact_banner=self.config.compact_banner,
                target=self.config.target,
            )
        )
        return f"{self.config.output} ({format_size(state.result.total_size)})"


def run_build(
    config: ResolvedConfig,
    *,
    toolchain: JavaToolchain | None = None,
    stream: TextIO | None = None,
    interactive: bool | None = None,
) -> PackResult:
    """Build an executable for ``config``.

    :param config: Resolved configuration.
    :param toolchain: External tool backend (defaults to :class:`JavaToolchain`).
    :param stream: Progress output stream (defaults to stderr).
    :param interactive: Force spinner rendering on or off.
    :returns: The written executable.
    :raises BuildError: If a fatal stage fails.
    """

    state: BuildState = BuildPipeline(
        config,
        toolchain=toolchain,
        stream=stream,
        interactive=interactive,
    ).run()
    if state.result is None:
        raise BuildError("Build finished without producing an executable")
    return state.result
