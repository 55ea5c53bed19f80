"""CRaC checkpoint creation.

The application is started from the minimized runtime with
``-XX:CRaCCheckpointTo``, given time to warm up, and checkpointed with
``jcmd <pid> JDK.checkpoint``. This needs Linux, a CRaC-capable JDK and a target
that matches the build host; without any of these the stage is skipped.
"""

import logging
import pathlib
import subprocess
import time

from jar_flattener.errors import CheckpointError
from jar_flattener.process import CHECKPOINT_TIMEOUT, run_tool
from jar_flattener.target import Target, current_target

logger: logging.Logger = logging.getLogger("jar_flattener.crac")

WARMUP_SECONDS: float = 5.0
CHECKPOINT_DIR_NAME: str = "crac"


def check_checkpoint_supported(target: Target) -> None:
    """Raise :class:`CheckpointError` when a checkpoint cannot be taken for ``target``."""

    if target.os != "linux":
        raise CheckpointError(f"CRaC requires a Linux target, got {target}")
    if target != current_target():
        raise CheckpointError(f"CRaC checkpoints must be created on a {target} host")


def create_checkpoint(
    runtime_dir: pathlib.Path,
    jdk_path: pathlib.Path,
    jar_path: pathlib.Path,
    work_dir: pathlib.Path,
    *,
    target: Target,
) -> pathlib.Path:
    """Run the app and checkpoint it.

    :param runtime_dir: Minimized runtime to run the app with.
    :param jdk_path: Full JDK providing ``jcmd``.
    :param jar_path: Application jar.
    :param work_dir: Scratch directory; the checkpoint goes to ``work_dir/crac``.
    :param target: Build target.
    :returns: Checkpoint directory.
    :raises CheckpointError: If no checkpoint could be produced.
    """

    check_checkpoint_supported(target)

    out: pathlib.Path = work_dir / CHECKPOINT_DIR_NAME
    out.mkdir(parents=True, exist_ok=True)

    cmd: list[str] = [
        str(runtime_dir / "bin" / "java"),
        f"-XX:CRaCCheckpointTo={out}",
        "-jar",
        str(jar_path),
    ]
    log_path: pathlib.Path = work_dir / "crac-app.log"
    logger.info(f"jar-flattener: starting app for checkpoint: {' '.join(cmd)}")

    with open(log_path, "w", encoding="utf-8") as log:
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise CheckpointError(f"could not start java: {e}") from e

        try:
            time.sleep(WARMUP_SECONDS)
            if proc.poll() is not None:
                raise CheckpointError(f"app exited before checkpoint ({_last_line(log_path, proc.returncode)})")

            run_tool(
                [str(jdk_path / "bin" / "jcmd"), str(proc.pid), "JDK.checkpoint"],
                timeout=CHECKPOINT_TIMEOUT,
                error_cls=CheckpointError,
            )
            try:
                proc.wait(timeout=CHECKPOINT_TIMEOUT)
            except subprocess.TimeoutExpired as e:
                raise CheckpointError("app did not exit after checkpoint") from e
        finally:
            if proc.poll() is None:
                proc.kill()
                proc.wait()

    if any(out.iterdir()) is False:
        raise CheckpointError("checkpoint directory is empty")
    return out


def _last_line(log_path: pathlib.Path, returncode: int | None) -> str:
    lines: list[str] = log_path.read_text(encoding="utf-8", errors="replace").strip().splitlines()
    if len(lines) == 0:
        return f"exit={returncode}"
    return lines[-1]
