"""Tests for transitive resolution, conflicts and fetch de-duplication."""

import threading
import zipfile

import pytest

from conftest import CountingTransport, FakeRepository
from coordinates.parser import parse, parse_manifest
from errors import ResolutionConflictError, UnresolvedDependencyError
from resolver.cache import ArtifactCache
from resolver.engine import ArtifactResolver


def _resolver(repo, cache_root, delay=0.0, workers=8):
    transport = CountingTransport([repo.url], delay=delay)
    return ArtifactResolver(ArtifactCache(cache_root), transport, workers=workers), transport


def _gavs(resolved):
    return [r.coordinate.gav for r in resolved]


def test_nearest_declaration_wins(repo, cache_root):
    repo.publish("t:a:1", ["t:b:1.0", "t:c:1"])
    repo.publish("t:c:1", ["t:b:2.0"])
    repo.publish("t:b:1.0")
    repo.publish("t:b:2.0")
    resolver, transport = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:a:1"]))

    assert _gavs(resolved) == ["t:a:1", "t:b:1.0", "t:c:1"]
    assert transport.artifact_fetches("t:b:2.0") == 0


def test_nearest_wins_regardless_of_declaration_order(repo, cache_root):
    repo.publish("t:a:1", ["t:c:1", "t:b:1.0"])
    repo.publish("t:c:1", ["t:b:2.0"])
    repo.publish("t:b:1.0")
    repo.publish("t:b:2.0")
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:a:1"]))

    assert "t:b:1.0" in _gavs(resolved)
    assert "t:b:2.0" not in _gavs(resolved)


def test_first_declared_wins_at_equal_depth(repo, cache_root):
    repo.publish("t:x:1", ["t:shared:1"])
    repo.publish("t:y:1", ["t:shared:2"])
    repo.publish("t:shared:1")
    repo.publish("t:shared:2")
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:x:1", "t:y:1"]))

    assert _gavs(resolved) == ["t:x:1", "t:y:1", "t:shared:1"]


def test_direct_declaration_overrides_transitive(repo, cache_root):
    repo.publish("t:a:1", ["t:b:2.0"])
    repo.publish("t:b:1.0")
    repo.publish("t:b:2.0")
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:a:1", "t:b:1.0"]))

    assert _gavs(resolved) == ["t:a:1", "t:b:1.0"]


def test_exclusions_prune_subtree(repo, cache_root):
    repo.publish("t:a:1", ["t:b:1"])
    repo.publish("t:b:1", ["t:c:1"])
    repo.publish("t:c:1", ["t:d:1"])
    repo.publish("t:d:1")
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:a:1; exclude=t:c"]))

    assert _gavs(resolved) == ["t:a:1", "t:b:1"]


def test_descriptor_exclusions_and_scopes(repo, cache_root):
    repo.publish("t:a:1", [
        {"gav": "t:b:1", "exclusions": ["t:*"]},
        {"gav": "t:test-only:1", "scope": "test"},
        {"gav": "t:provided:1", "scope": "provided"},
        {"gav": "t:opt:1", "optional": True},
        {"gav": "t:rt:1", "scope": "runtime"},
    ])
    repo.publish("t:b:1", ["t:c:1"])
    repo.publish("t:c:1")
    repo.publish("t:rt:1")
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:a:1"]))

    assert _gavs(resolved) == ["t:a:1", "t:b:1", "t:rt:1"]


def test_non_runtime_roots_are_skipped(repo, cache_root):
    repo.publish("t:a:1")
    resolver, transport = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:a:1; scope=test"]))

    assert resolved == []
    assert transport.total == 0


def test_cycle_is_fatal(repo, cache_root):
    repo.publish("t:a:1", ["t:b:1"])
    repo.publish("t:b:1", ["t:a:1"])
    resolver, _ = _resolver(repo, cache_root)

    with pytest.raises(ResolutionConflictError) as exc_info:
        resolver.resolve(parse_manifest(["t:a:1"]))
    assert exc_info.value.cycle == ["t:a:1", "t:b:1", "t:a:1"]


def test_cycle_broken_by_version_override_is_not_an_error(repo, cache_root):
    repo.publish("t:a:2", ["t:b:1"])
    repo.publish("t:b:1", ["t:a:1"])
    repo.publish("t:a:1")
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:a:2"]))

    assert _gavs(resolved) == ["t:a:2", "t:b:1"]


def test_missing_descriptor_means_no_dependencies(repo, cache_root):
    repo.publish("t:bare:1", pom=False)
    resolver, _ = _resolver(repo, cache_root)

    assert _gavs(resolver.resolve(parse_manifest(["t:bare:1"]))) == ["t:bare:1"]


def test_missing_descriptor_is_remembered_by_warm_cache(repo, cache_root):
    repo.publish("t:bare:1", pom=False)
    first, _ = _resolver(repo, cache_root)
    first.resolve(parse_manifest(["t:bare:1"]))

    second, transport = _resolver(repo, cache_root)
    resolved = second.resolve(parse_manifest(["t:bare:1"]))

    assert _gavs(resolved) == ["t:bare:1"]
    assert transport.total == 0
    assert second.fetch_count == 0


def test_latin1_descriptor_is_read_with_its_declared_encoding(repo, cache_root):
    repo.publish("t:dep:1")
    artifact = repo.publish("t:legacy:1")
    pom = artifact.with_suffix(".pom")
    pom.write_bytes(
        b'<?xml version="1.0" encoding="ISO-8859-1"?>\n'
        b"<project><name>Biblioth\xe8que</name><dependencies><dependency>"
        b"<groupId>t</groupId><artifactId>dep</artifactId><version>1</version>"
        b"</dependency></dependencies></project>"
    )
    resolver, _ = _resolver(repo, cache_root)

    assert _gavs(resolver.resolve(parse_manifest(["t:legacy:1"]))) == ["t:legacy:1", "t:dep:1"]


def test_undecodable_descriptor_is_unresolved(repo, cache_root):
    artifact = repo.publish("t:broken:1")
    artifact.with_suffix(".pom").write_bytes(b"<project><name>caf\xe9</name></project>")
    resolver, _ = _resolver(repo, cache_root)

    with pytest.raises(UnresolvedDependencyError) as exc_info:
        resolver.resolve(parse_manifest(["t:broken:1"]))
    assert "unreadable descriptor" in str(exc_info.value)


def test_missing_artifact_names_coordinate(repo, cache_root):
    resolver, _ = _resolver(repo, cache_root)

    with pytest.raises(UnresolvedDependencyError) as exc_info:
        resolver.resolve(parse_manifest(["t:ghost:1"]))
    assert exc_info.value.coordinate.gav == "t:ghost:1"
    assert "t:ghost:1" in str(exc_info.value)


def test_offline_with_cold_cache_fails(repo, cache_root):
    repo.publish("t:a:1")
    resolver, transport = _resolver(repo, cache_root)

    with pytest.raises(UnresolvedDependencyError) as exc_info:
        resolver.resolve(parse_manifest(["t:a:1"]), allow_remote_fetch=False)
    assert "t:a:1" in str(exc_info.value)
    assert transport.total == 0


def test_warm_cache_is_idempotent_and_offline_capable(repo, cache_root):
    repo.publish("t:a:1", ["t:b:1", "t:c:1"])
    repo.publish("t:b:1", ["t:d:1"])
    repo.publish("t:c:1")
    repo.publish("t:d:1")
    first, _ = _resolver(repo, cache_root)
    cold = first.resolve(parse_manifest(["t:a:1"]))

    second, transport = _resolver(repo, cache_root)
    warm = second.resolve(parse_manifest(["t:a:1"]))
    offline = second.resolve(parse_manifest(["t:a:1"]), allow_remote_fetch=False)

    assert transport.total == 0
    assert second.fetch_count == 0
    assert [r.path for r in warm] == [r.path for r in cold]
    assert [r.path for r in offline] == [r.path for r in cold]


def test_diamond_fetches_shared_node_once(repo, cache_root):
    repo.publish("t:top:1", ["t:left:1", "t:right:1"])
    repo.publish("t:left:1", ["t:base:1"])
    repo.publish("t:right:1", ["t:base:1"])
    repo.publish("t:base:1")
    resolver, transport = _resolver(repo, cache_root, delay=0.02)

    resolved = resolver.resolve(parse_manifest(["t:top:1"]))

    assert _gavs(resolved) == ["t:top:1", "t:left:1", "t:right:1", "t:base:1"]
    assert transport.artifact_fetches("t:base:1") == 1


def test_concurrent_requests_for_one_coordinate_fetch_once(repo, cache_root):
    repo.publish("t:shared:1")
    resolver, transport = _resolver(repo, cache_root, delay=0.1)
    coordinate = parse("t:shared:1")
    results = []
    errors = []

    def _worker():
        try:
            results.append(resolver.resolve_single(coordinate).path)
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=_worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(set(results)) == 1
    assert transport.artifact_fetches("t:shared:1") == 1


def test_failed_fetch_is_shared_by_waiters(repo, cache_root):
    resolver, transport = _resolver(repo, cache_root, delay=0.1)
    coordinate = parse("t:ghost:1")
    failures = []

    def _worker():
        try:
            resolver.resolve_single(coordinate)
        except UnresolvedDependencyError as exc:
            failures.append(exc)

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(failures) == 4
    assert transport.artifact_fetches("t:ghost:1") == 1


def test_version_less_coordinate_uses_latest_release(repo, cache_root):
    repo.publish("t:lib:1.9")
    repo.publish("t:lib:1.10")
    repo.metadata("t", "lib", ["1.9", "1.10", "2.0-SNAPSHOT"])
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["t:lib"]))

    assert _gavs(resolved) == ["t:lib:1.10"]


def test_version_less_coordinate_with_maven_qualifiers(repo, cache_root):
    repo.publish("com.google.guava:guava:33.0.0-jre")
    repo.metadata("com.google.guava", "guava", ["32.1.3-jre", "33.0.0-jre", "32.1.3-android"])
    resolver, _ = _resolver(repo, cache_root)

    resolved = resolver.resolve(parse_manifest(["com.google.guava:guava"]))

    assert _gavs(resolved) == ["com.google.guava:guava:33.0.0-jre"]


def test_version_less_coordinate_uses_metadata_release(repo, cache_root):
    repo.publish("t:lib:2.0")
    repo.metadata("t", "lib", ["2.0", "3.0-beta"], release="2.0")
    resolver, _ = _resolver(repo, cache_root)

    assert _gavs(resolver.resolve(parse_manifest(["t:lib"]))) == ["t:lib:2.0"]


def test_version_less_coordinate_prefers_cached_version(repo, cache_root):
    repo.publish("t:lib:1.0")
    first, _ = _resolver(repo, cache_root)
    first.resolve(parse_manifest(["t:lib:1.0"]))
    repo.publish("t:lib:2.0")
    repo.metadata("t", "lib", ["1.0", "2.0"])

    second, _ = _resolver(repo, cache_root)
    resolved = second.resolve(parse_manifest(["t:lib"]), allow_remote_fetch=False)

    assert _gavs(resolved) == ["t:lib:1.0"]
    assert second.fetch_count == 0


def test_repositories_tried_in_priority_order(tmp_path, cache_root):
    primary = FakeRepository(tmp_path / "primary")
    mirror = FakeRepository(tmp_path / "mirror")
    mirror.publish("t:only-mirror:1")
    primary.publish("t:both:1", modules={"both.py": "WHERE = 'primary'\n"})
    mirror.publish("t:both:1", modules={"both.py": "WHERE = 'mirror'\n"})
    transport = CountingTransport([primary.url, mirror.url])
    resolver = ArtifactResolver(ArtifactCache(cache_root), transport)

    resolved = resolver.resolve(parse_manifest(["t:both:1", "t:only-mirror:1"]))

    with zipfile.ZipFile(resolved[0].path) as archive:
        assert archive.read("both.py") == b"WHERE = 'primary'\n"
    assert _gavs(resolved) == ["t:both:1", "t:only-mirror:1"]
