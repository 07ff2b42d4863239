"""Shared fixtures: an on-disk Maven 2 layout repository and a counting transport."""
from __future__ import annotations

import threading
import time
import zipfile
from collections import Counter
from pathlib import Path

import pytest

from coordinates.parser import parse
from resolver.cache import artifact_path
from resolver.transport import RepositoryTransport

POM_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>{group}</groupId>
  <artifactId>{artifact}</artifactId>
  <version>{version}</version>
  <dependencies>
{dependencies}
  </dependencies>
</project>
"""


def _dependency_xml(spec) -> str:
    if isinstance(spec, str):
        spec = {"gav": spec}
    coordinate = parse(spec["gav"])
    lines = [
        "    <dependency>",
        f"      <groupId>{coordinate.group}</groupId>",
        f"      <artifactId>{coordinate.artifact}</artifactId>",
    ]
    if coordinate.version:
        lines.append(f"      <version>{coordinate.version}</version>")
    if coordinate.classifier:
        lines.append(f"      <classifier>{coordinate.classifier}</classifier>")
    if spec.get("scope"):
        lines.append(f"      <scope>{spec['scope']}</scope>")
    if spec.get("optional"):
        lines.append("      <optional>true</optional>")
    if spec.get("exclusions"):
        lines.append("      <exclusions>")
        for pattern in spec["exclusions"]:
            group, artifact = pattern.split(":")
            lines.append(
                f"        <exclusion><groupId>{group}</groupId>"
                f"<artifactId>{artifact}</artifactId></exclusion>"
            )
        lines.append("      </exclusions>")
    lines.append("    </dependency>")
    return "\n".join(lines)


class FakeRepository:
    """Writes artifacts and descriptors in the Maven 2 layout under ``base``."""

    def __init__(self, base: Path):
        self.base = base
        base.mkdir(parents=True, exist_ok=True)

    @property
    def url(self) -> str:
        return str(self.base)

    def publish(self, gav: str, dependencies=(), pom: bool = True, modules=None) -> Path:
        coordinate = parse(gav)
        target = self.base.joinpath(*artifact_path(coordinate).split("/"))
        target.parent.mkdir(parents=True, exist_ok=True)
        module = coordinate.artifact.replace("-", "_")
        with zipfile.ZipFile(target, "w") as archive:
            for name, body in (modules or {f"{module}.py": f"VERSION = {coordinate.version!r}\n"}).items():
                archive.writestr(name, body)
        if pom:
            pom_path = self.base.joinpath(*artifact_path(coordinate, "pom").split("/"))
            pom_path.write_text(POM_TEMPLATE.format(
                group=coordinate.group,
                artifact=coordinate.artifact,
                version=coordinate.version,
                dependencies="\n".join(_dependency_xml(d) for d in dependencies),
            ), encoding="utf-8")
        return target

    def metadata(self, group: str, artifact: str, versions, release: str = None) -> None:
        directory = self.base.joinpath(*group.split("."), artifact)
        directory.mkdir(parents=True, exist_ok=True)
        items = "".join(f"<version>{v}</version>" for v in versions)
        release_xml = f"<release>{release}</release>" if release else ""
        (directory / "maven-metadata.xml").write_text(
            f"<metadata><groupId>{group}</groupId><artifactId>{artifact}</artifactId>"
            f"<versioning>{release_xml}<versions>{items}</versions></versioning></metadata>",
            encoding="utf-8",
        )


class CountingTransport(RepositoryTransport):
    """Transport recording every artifact fetch; optionally slowed down."""

    def __init__(self, repositories, delay: float = 0.0):
        super().__init__(repositories)
        self.delay = delay
        self.calls = Counter()
        self._calls_lock = threading.Lock()

    def fetch(self, coordinate, extension=None):
        with self._calls_lock:
            self.calls[(coordinate.gav, extension or coordinate.extension)] += 1
        if self.delay:
            time.sleep(self.delay)
        return super().fetch(coordinate, extension)

    def artifact_fetches(self, gav: str) -> int:
        return sum(n for (g, ext), n in self.calls.items() if g == gav and ext != "pom")

    @property
    def total(self) -> int:
        return sum(self.calls.values())


@pytest.fixture
def repo(tmp_path):
    return FakeRepository(tmp_path / "remote")


@pytest.fixture
def cache_root(tmp_path):
    return str(tmp_path / "cache")


def write_root(directory: Path, manifest: str = None, files=None) -> Path:
    """Create an exploded root artifact with an optional ``.thin/thin.deps``."""
    directory.mkdir(parents=True, exist_ok=True)
    if manifest is not None:
        (directory / ".thin").mkdir(exist_ok=True)
        (directory / ".thin" / "thin.deps").write_text(manifest, encoding="utf-8")
    for name, body in (files or {}).items():
        path = directory.joinpath(*name.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
    return directory


@pytest.fixture
def make_root():
    return write_root
