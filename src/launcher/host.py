"""Execution host: run an entry point in a child interpreter.

The child is started isolated (``-I``) so neither the launcher's working
directory nor ``PYTHONPATH`` leaks into it; the run path is prepended to its
``sys.path`` by a small bootstrap before the entry point is imported.

Entry point identifiers:

* ``package.module:callable`` imports the module and calls the callable with
  no arguments; its return value becomes the exit status;
* ``package.module`` runs the module as ``__main__`` (like ``python -m``);
* ``__main__`` runs the root artifact itself (like ``python app.zip``).
"""
from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import List, Optional, Sequence

from runpath import RunPath

logger = logging.getLogger(__name__)

BOOTSTRAP = """\
import runpy, sys
entry, count = sys.argv[1], int(sys.argv[2])
paths = sys.argv[3:3 + count]
sys.argv = [entry] + sys.argv[3 + count:]
sys.path[0:0] = paths
module, _, attr = entry.partition(":")
if attr:
    import importlib
    target = importlib.import_module(module)
    for name in attr.split("."):
        target = getattr(target, name)
    sys.exit(target())
elif module == "__main__":
    runpy.run_path(paths[0], run_name="__main__")
else:
    runpy.run_module(module, run_name="__main__", alter_sys=True)
"""


class ExecutionHost:
    """Start the application against a run path and report its exit status."""

    def __init__(self, python: Optional[str] = None):
        self._python = python or sys.executable

    def command(self, run_path: RunPath, entry_point: str, args: Sequence[str] = ()) -> List[str]:
        entries = run_path.entries()
        return [self._python, "-I", "-c", BOOTSTRAP, entry_point, str(len(entries)),
                *entries, *args]

    def run(self, run_path: RunPath, entry_point: str, args: Sequence[str] = ()) -> int:
        """Run the entry point and return the child's exit status."""
        cmd = self.command(run_path, entry_point, args)
        logger.info("Launching %s with %d run path entries", entry_point, len(run_path))
        logger.debug("Run path: %s", os.pathsep.join(run_path.entries()))
        try:
            result = subprocess.run(cmd, check=False)  # noqa: S603
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            return 130  # Standard SIGINT exit code
        return result.returncode
