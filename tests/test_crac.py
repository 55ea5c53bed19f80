import pathlib
import shlex

import pytest

from jar_flattener.crac import check_checkpoint_supported, create_checkpoint
from jar_flattener.errors import CheckpointError
from jar_flattener.target import LINUX_AARCH64, LINUX_X64, MACOS_AARCH64


def _script(path: pathlib.Path, body: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(0o755)


@pytest.fixture
def host_linux_x64(monkeypatch):
    monkeypatch.setattr("jar_flattener.crac.current_target", lambda: LINUX_X64)
    monkeypatch.setattr("jar_flattener.crac.WARMUP_SECONDS", 0.3)


def test_checkpoint_needs_linux_target(host_linux_x64):
    with pytest.raises(CheckpointError, match="requires a Linux target"):
        check_checkpoint_supported(MACOS_AARCH64)


def test_checkpoint_needs_matching_host(host_linux_x64):
    with pytest.raises(CheckpointError, match="linux-aarch64 host"):
        check_checkpoint_supported(LINUX_AARCH64)

    check_checkpoint_supported(LINUX_X64)


def test_app_exiting_early(tmp_path, host_linux_x64):
    runtime = tmp_path / "runtime"
    _script(runtime / "bin" / "java", "echo 'Error: CRaC engine not found'\nexit 1\n")
    work = tmp_path / "work"
    work.mkdir()

    with pytest.raises(CheckpointError, match="CRaC engine not found"):
        create_checkpoint(runtime, tmp_path / "jdk", tmp_path / "app.jar", work, target=LINUX_X64)


def test_checkpoint_round(tmp_path, host_linux_x64):
    work = tmp_path / "work"
    work.mkdir()
    marker = work / "checkpoint-dir"
    runtime = tmp_path / "runtime"
    jdk = tmp_path / "jdk"
    # The app records its checkpoint directory and idles; jcmd writes an image and stops it.
    _script(
        runtime / "bin" / "java",
        f'echo "${{1#-XX:CRaCCheckpointTo=}}" > {shlex.quote(str(marker))}\nexec sleep 30\n',
    )
    _script(
        jdk / "bin" / "jcmd",
        f'd=$(cat {shlex.quote(str(marker))})\necho image > "$d/core.img"\nkill "$1"\n',
    )

    crac = create_checkpoint(runtime, jdk, tmp_path / "app.jar", work, target=LINUX_X64)

    assert crac == work / "crac"
    assert (crac / "core.img").read_text().strip() == "image"


def test_empty_checkpoint_is_an_error(tmp_path, host_linux_x64):
    work = tmp_path / "work"
    work.mkdir()
    runtime = tmp_path / "runtime"
    jdk = tmp_path / "jdk"
    _script(runtime / "bin" / "java", "exec sleep 30\n")
    _script(jdk / "bin" / "jcmd", 'kill "$1"\n')

    with pytest.raises(CheckpointError, match="checkpoint directory is empty"):
        create_checkpoint(runtime, jdk, tmp_path / "app.jar", work, target=LINUX_X64)
