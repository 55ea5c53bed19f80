import zipfile

import pytest

from jar_flattener.errors import ConfigError
from jar_flattener.validate import max_class_major_version, required_java_version, resolve_java_version


def _class(major: int) -> bytes:
    return bytes.fromhex("cafebabe") + (0).to_bytes(2, "big") + major.to_bytes(2, "big") + b"\x00" * 8


def test_highest_major_version_wins(make_jar):
    jar = make_jar(major=52, entries={"com/example/Util.class": _class(61), "com/example/Old.class": _class(50)})

    assert max_class_major_version(jar) == 61
    assert required_java_version(jar) == 17


def test_multi_release_entries_are_ignored(make_jar):
    jar = make_jar(major=52, entries={"META-INF/versions/21/com/example/Main.class": _class(65)})

    assert required_java_version(jar) == 8


def test_jar_without_classes(tmp_path):
    jar = tmp_path / "resources.jar"
    with zipfile.ZipFile(jar, "w") as zf:
        zf.writestr("data.txt", "x")

    assert max_class_major_version(jar) is None
    assert resolve_java_version(jar, 21, False) == 21


def test_default_version_is_raised(make_jar):
    jar = make_jar(major=66)

    assert resolve_java_version(jar, 21, False) == 22


def test_explicit_version_too_low_is_rejected(make_jar):
    jar = make_jar(major=61)

    with pytest.raises(ConfigError, match="JAR requires Java 17"):
        resolve_java_version(jar, 11, True)


def test_sufficient_version_is_kept(make_jar):
    jar = make_jar(major=55)

    assert resolve_java_version(jar, 17, True) == 17


def test_unreadable_jar(tmp_path):
    bogus = tmp_path / "broken.jar"
    bogus.write_bytes(b"not a zip")

    with pytest.raises(ConfigError, match="Could not read"):
        max_class_major_version(bogus)
