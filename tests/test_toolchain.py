import pathlib

from jar_flattener.jdk import JdkCache
from jar_flattener.target import LINUX_X64, MACOS_AARCH64
from jar_flattener.toolchain import JavaToolchain


def _fetcher(version, target, dest: pathlib.Path) -> None:
    (dest / "bin").mkdir(parents=True)
    (dest / "jmods").mkdir()


def test_same_target_uses_one_jdk(tmp_path, monkeypatch):
    monkeypatch.setattr("jar_flattener.toolchain.current_target", lambda: LINUX_X64)
    seen = {}

    def fake_create_runtime(jdk_path, modules, dest_dir, *, java_version, jmods_path=None):
        seen["jdk"] = jdk_path
        seen["jmods"] = jmods_path
        return dest_dir / "runtime"

    monkeypatch.setattr("jar_flattener.toolchain.create_runtime", fake_create_runtime)
    cache = JdkCache(tmp_path / "cache", fetcher=_fetcher)
    toolchain = JavaToolchain(cache)

    jdk = toolchain.fetch_runtime(21, LINUX_X64)
    toolchain.minimize(jdk, ["java.base"], tmp_path, version=21, target=LINUX_X64)

    assert [e.key for e in cache.entries()] == ["jdk-21-linux-x64"]
    assert seen == {"jdk": jdk, "jmods": None}


def test_cross_target_links_with_host_tools(tmp_path, monkeypatch):
    monkeypatch.setattr("jar_flattener.toolchain.current_target", lambda: LINUX_X64)
    monkeypatch.setattr("jar_flattener.jdk.current_target", lambda: LINUX_X64)
    seen = {}

    def fake_detect_modules(jdk_path, jar_path, *, java_version):
        seen["jdeps_jdk"] = jdk_path
        return ["java.base"]

    def fake_create_runtime(jdk_path, modules, dest_dir, *, java_version, jmods_path=None):
        seen["jlink_jdk"] = jdk_path
        seen["jmods"] = jmods_path
        return dest_dir / "runtime"

    monkeypatch.setattr("jar_flattener.toolchain.detect_modules", fake_detect_modules)
    monkeypatch.setattr("jar_flattener.toolchain.create_runtime", fake_create_runtime)
    cache = JdkCache(tmp_path / "cache", fetcher=_fetcher)
    toolchain = JavaToolchain(cache)

    target_jdk = toolchain.fetch_runtime(21, MACOS_AARCH64)
    toolchain.analyze(target_jdk, tmp_path / "app.jar", version=21, target=MACOS_AARCH64)
    toolchain.minimize(target_jdk, ["java.base"], tmp_path, version=21, target=MACOS_AARCH64)

    host_jdk = cache.entry_path(21, LINUX_X64)
    assert [e.key for e in cache.entries()] == ["jdk-21-linux-x64", "jdk-21-macos-aarch64"]
    assert seen == {"jdeps_jdk": host_jdk, "jlink_jdk": host_jdk, "jmods": target_jdk / "jmods"}
