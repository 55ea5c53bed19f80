import pathlib

import pytest

from jar_flattener.build import (
    CLOJURE,
    GRADLE,
    LEININGEN,
    MAVEN,
    build_command,
    build_command_description,
    detect_build_system,
    find_uberjar,
)
from jar_flattener.errors import DetectionError, ToolError


@pytest.mark.parametrize(
    ("marker", "expected"),
    [
        ("pom.xml", MAVEN),
        ("build.gradle", GRADLE),
        ("build.gradle.kts", GRADLE),
        ("project.clj", LEININGEN),
        ("deps.edn", CLOJURE),
    ],
)
def test_detect_build_system(tmp_path, marker, expected):
    (tmp_path / marker).write_text("")

    assert detect_build_system(tmp_path) == expected


def test_maven_takes_precedence(tmp_path):
    (tmp_path / "pom.xml").write_text("")
    (tmp_path / "build.gradle").write_text("")

    assert detect_build_system(tmp_path) == MAVEN


def test_detect_without_marker(tmp_path):
    with pytest.raises(DetectionError, match="No supported build system"):
        detect_build_system(tmp_path)


def test_detect_non_directory(tmp_path):
    with pytest.raises(DetectionError, match="neither a .jar file nor a project directory"):
        detect_build_system(tmp_path / "missing")


def test_build_commands(tmp_path):
    assert build_command(MAVEN, tmp_path) == ["mvn", "-q", "-DskipTests", "package"]
    assert build_command(LEININGEN, tmp_path) == ["lein", "uberjar"]
    assert build_command(CLOJURE, tmp_path) == ["clojure", "-T:build", "uber"]

    (tmp_path / "build.gradle").write_text("plugins { id 'com.github.johnrengelman.shadow' }\n")
    assert build_command(GRADLE, tmp_path) == ["gradle", "-q", "shadowJar", "-x", "test"]


def test_wrapper_scripts_are_preferred(tmp_path):
    (tmp_path / "mvnw").write_text("#!/bin/sh\n")
    (tmp_path / "gradlew").write_text("#!/bin/sh\n")
    (tmp_path / "build.gradle").write_text("")

    assert build_command(MAVEN, tmp_path)[0] == str(tmp_path / "mvnw")
    assert build_command(GRADLE, tmp_path) == [str(tmp_path / "gradlew"), "-q", "build", "-x", "test"]
    assert build_command_description(MAVEN, tmp_path) == "mvnw -q -DskipTests package"


def _jar(path: pathlib.Path, size: int) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


def test_find_uberjar_prefers_named_uberjar(tmp_path):
    _jar(tmp_path / "app-1.0.jar", 5000)
    best = _jar(tmp_path / "app-1.0-jar-with-dependencies.jar", 100)
    _jar(tmp_path / "app-1.0-sources.jar", 9000)

    assert find_uberjar(tmp_path) == best


def test_find_uberjar_falls_back_to_largest(tmp_path):
    _jar(tmp_path / "small.jar", 10)
    big = _jar(tmp_path / "nested" / "big.jar", 1000)
    _jar(tmp_path / "original-big.jar", 5000)

    assert find_uberjar(tmp_path) == big


def test_find_uberjar_errors(tmp_path):
    with pytest.raises(ToolError, match="output directory is missing"):
        find_uberjar(tmp_path / "target")

    (tmp_path / "target").mkdir()
    with pytest.raises(ToolError, match="no jar was found"):
        find_uberjar(tmp_path / "target")
