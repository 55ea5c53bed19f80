"""Pipeline stage list.

The stage list is computed once from the resolved configuration, before the
first stage starts. Its length is the ``total`` shown in every ``[i/total]``
label, so it must never be rebuilt mid-run.
"""

from dataclasses import dataclass

from jar_flattener.config import ResolvedConfig

DETECT: str = "detect-build-system"
BUILD: str = "build-archive"
ARCHIVE: str = "archive-acquired"
SHRINK: str = "shrink"
RUNTIME_FETCH: str = "runtime-fetch"
MODULE_ANALYSIS: str = "module-analysis"
MINIMIZATION: str = "minimization"
CHECKPOINT: str = "checkpoint"
PACKING: str = "packing"


@dataclass(frozen=True, slots=True)
class Stage:
    """One step of the build.

    :ivar key: Stable identifier used to dispatch the stage.
    :ivar title: Human readable label.
    :ivar optional: Whether a failure is recoverable (skipped) instead of fatal.
    """

    key: str
    title: str
    optional: bool = False


def stage_count(*, is_jar_input: bool, shrink: bool, crac: bool) -> int:
    """Number of stages for a build.

    :param is_jar_input: Input is a prebuilt jar (no detect/build stages).
    :param shrink: Shrink stage enabled.
    :param crac: Checkpoint stage enabled.
    :returns: Total stage count.
    """

    base: int = 1 if is_jar_input is True else 2
    shrink_stage: int = 1 if shrink is True else 0
    crac_stage: int = 1 if crac is True else 0
    # runtime fetch, module analysis, minimization, packing
    return base + shrink_stage + 4 + crac_stage


def build_stage_list(config: ResolvedConfig) -> tuple[Stage, ...]:
    """Build the ordered stage list for a configuration.

    :param config: Resolved configuration.
    :returns: Stages in execution order.
    """

    stages: list[Stage] = []
    if config.is_jar_input is True:
        stages.append(Stage(key=ARCHIVE, title="Using pre-built JAR"))
    else:
        stages.append(Stage(key=DETECT, title="Detecting build system"))
        stages.append(Stage(key=BUILD, title="Building uberjar"))

    if config.shrink is True:
        stages.append(Stage(key=SHRINK, title="Shrinking JAR"))

    stages.append(Stage(key=RUNTIME_FETCH, title="Downloading JDK"))
    stages.append(Stage(key=MODULE_ANALYSIS, title="Analyzing module dependencies"))
    stages.append(Stage(key=MINIMIZATION, title="Creating minimal runtime (jlink)"))

    if config.crac is True:
        stages.append(Stage(key=CHECKPOINT, title="Creating CRaC checkpoint", optional=True))

    stages.append(Stage(key=PACKING, title="Packing binary"))
    return tuple(stages)
