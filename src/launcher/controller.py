"""Top-level launch flow: locate root, pick mode, resolve, then print or run."""
from __future__ import annotations

import logging
import os
import sys
from typing import List, Optional, Sequence, TextIO

from constants import ConfigKeys, Constants, LaunchMode
from coordinates.models import Manifest
from coordinates.parser import read_manifest
from errors import ManifestError
from archive.inspector import RootArtifact, find_single_entry_point, has_entry, read_bytes
from resolver import ArtifactCache, ArtifactResolver, RepositoryTransport
from runpath import RunPath, assemble
from .environment import LaunchEnvironment
from .host import ExecutionHost
from .root import locate_root

logger = logging.getLogger(__name__)


def launch_mode(env: LaunchEnvironment) -> LaunchMode:
    """Dry run takes precedence over printing the run path."""
    if env.flag(ConfigKeys.DRYRUN):
        return LaunchMode.DRY_RUN
    if env.flag(ConfigKeys.CLASSPATH):
        return LaunchMode.PRINT_CLASSPATH
    return LaunchMode.RUN


def manifest_names(env: LaunchEnvironment) -> List[str]:
    """Manifest members to try inside the root, most specific first."""
    name = env.text(ConfigKeys.NAME) or Constants.DEFAULT_MANIFEST_NAME
    profile = env.text(ConfigKeys.PROFILE)
    stems = [f"{name}-{profile}", name] if profile else [name]
    return [f"{Constants.MANIFEST_DIR}/{stem}{Constants.MANIFEST_SUFFIX}" for stem in stems]


class Launcher:
    """Resolve-then-assemble-then-launch for one invocation."""

    def __init__(self, env: LaunchEnvironment, host: Optional[ExecutionHost] = None,
                 out: Optional[TextIO] = None, cwd: Optional[str] = None,
                 transport: Optional[RepositoryTransport] = None):
        self._env = env
        self._host = host or ExecutionHost()
        self._out = out
        self._cwd = cwd
        repos = env.text(ConfigKeys.REPO)
        self._resolver = ArtifactResolver(
            ArtifactCache(env.text(ConfigKeys.ROOT)),
            transport or RepositoryTransport(repos.split(",") if repos else None),
            workers=env.integer(ConfigKeys.WORKERS, Constants.DEFAULT_WORKERS),
        )
        self._allow_remote = not env.flag(ConfigKeys.OFFLINE)

    @property
    def resolver(self) -> ArtifactResolver:
        return self._resolver

    def _print(self, text: str) -> None:
        print(text, file=self._out or sys.stdout)

    def locate_root(self) -> RootArtifact:
        return locate_root(
            self._env,
            lambda coordinate: self._resolver.resolve_single(coordinate, self._allow_remote),
            cwd=self._cwd,
        )

    def load_manifest(self, root: RootArtifact) -> Manifest:
        """Read the root's dependency manifest; a root without one has no dependencies."""
        for member in manifest_names(self._env):
            data = read_bytes(root, member)
            if data is None:
                continue
            origin = f"{root.path}!{member}"
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError as exc:
                line = data[:exc.start].count(b"\n") + 1
                bad = data.splitlines()[line - 1].decode("utf-8", errors="replace")
                raise ManifestError([(line, bad, "not valid UTF-8")], source=origin) from exc
            return read_manifest(text.splitlines(), origin=origin)
        logger.info("No dependency manifest in %s", root.path)
        return Manifest(source=None)

    def entry_point(self, root: RootArtifact, manifest: Manifest) -> str:
        """Override from configuration, then the root's declared entry, then a search."""
        override = self._env.text(ConfigKeys.MAIN)
        if override:
            return override
        if manifest.main:
            return manifest.main
        return find_single_entry_point(root)

    def run_path(self, root: RootArtifact, manifest: Manifest) -> RunPath:
        for relative in manifest.paths:
            if not has_entry(root, relative):
                logger.warning("Manifest path '%s' does not exist in %s", relative, root.path)
        resolved = self._resolver.resolve(manifest.dependencies, self._allow_remote)
        return assemble(root, resolved, manifest.paths)

    def launch(self, args: Sequence[str] = ()) -> int:
        """Execute one launch and return the process exit status."""
        root = self.locate_root()
        mode = launch_mode(self._env)
        logger.debug("Launch mode %s, root %s (%s)", mode.value, root.path, root.kind.value)
        manifest = self.load_manifest(root)

        if mode is LaunchMode.DRY_RUN:
            resolved = self._resolver.resolve(manifest.dependencies, self._allow_remote)
            logger.debug("Downloaded %d dependencies to %s", len(resolved), self._resolver.cache.root)
            return 0

        run_path = self.run_path(root, manifest)
        if mode is LaunchMode.PRINT_CLASSPATH:
            self._print(run_path.classpath(os.pathsep))
            return 0

        entry = self.entry_point(root, manifest)
        return self._host.run(run_path, entry, args)
