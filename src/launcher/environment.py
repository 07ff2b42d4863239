"""Launch configuration as an explicit value object.

A ``LaunchEnvironment`` is built once per launch and handed to every
component that needs lookups. Property sources, highest precedence first:

1. command line ``--key=value`` (a bare ``--key`` has the empty value);
2. the YAML config file named by ``--config`` (nested mappings are
   flattened with ``.``);
3. process environment: ``thin.*`` keys are read from ``THIN_<KEY>``
   (``thin.dryrun`` -> ``THIN_DRYRUN``), any other key from
   ``THINRUN_<KEY>`` (``debug`` -> ``THINRUN_DEBUG``).

Values may contain ``${key:default}`` placeholders resolved against the
same sources.
"""
from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from constants import ConfigKeys

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")
_MAX_NESTING = 10


def env_name(key: str) -> str:
    """Environment variable consulted for a configuration key."""
    name = key.upper().replace(".", "_").replace("-", "_")
    if key.startswith("thin."):
        return name
    return f"THINRUN_{name}"


def is_launcher_key(key: str) -> bool:
    return key.startswith("thin.") or key == ConfigKeys.DEBUG


def split_command_line(argv: Sequence[str]) -> Tuple[Dict[str, str], List[str]]:
    """Separate launcher properties from application arguments.

    ``--thin.*`` and ``--debug`` options become properties; everything else,
    and everything after a literal ``--``, is passed to the application.
    """
    properties: Dict[str, str] = {}
    app_args: List[str] = []
    rest = list(argv)
    while rest:
        arg = rest.pop(0)
        if arg == "--":
            app_args.extend(rest)
            break
        if arg.startswith("--"):
            key, _, value = arg[2:].partition("=")
            if is_launcher_key(key):
                properties[key] = value
                continue
        app_args.append(arg)
    return properties, app_args


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, name + "."))
        elif isinstance(value, bool):
            flat[name] = "true" if value else "false"
        elif value is None:
            flat[name] = ""
        elif isinstance(value, (list, tuple)):
            flat[name] = ",".join(str(v) for v in value)
        else:
            flat[name] = str(value)
    return flat


def load_config_file(path: Optional[str]) -> Dict[str, str]:
    """Load a YAML config file into flat properties; missing file is an error."""
    if not path:
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"config file {path} must contain a mapping")
    return _flatten(data)


class LaunchEnvironment:
    """Resolved key -> value lookups with defaulting."""

    def __init__(self, command_line: Optional[Mapping[str, str]] = None,
                 config: Optional[Mapping[str, str]] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self._command_line = dict(command_line or {})
        self._config = dict(config or {})
        self._environ = dict(os.environ if environ is None else environ)

    @classmethod
    def from_command_line(cls, argv: Sequence[str], config_path: Optional[str] = None,
                          environ: Optional[Mapping[str, str]] = None) -> Tuple["LaunchEnvironment", List[str]]:
        """Build an environment and return it with the application arguments."""
        properties, app_args = split_command_line(argv)
        return cls(properties, load_config_file(config_path), environ), app_args

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Raw lookup across sources, then placeholder resolution of the value."""
        for source in (self._command_line, self._config):
            if key in source:
                return self.resolve_placeholders(source[key])
        name = env_name(key)
        if name in self._environ:
            return self.resolve_placeholders(self._environ[name])
        return default

    def resolve_placeholders(self, text: str) -> str:
        """Replace ``${key:default}`` occurrences; unknown keys without a default stay."""
        for _ in range(_MAX_NESTING):
            def _sub(match: "re.Match[str]") -> str:
                key, default = match.group(1).strip(), match.group(2)
                for source in (self._command_line, self._config):
                    if key in source:
                        return source[key]
                if env_name(key) in self._environ:
                    return self._environ[env_name(key)]
                return default if default is not None else match.group(0)

            expanded = _PLACEHOLDER.sub(_sub, text)
            if expanded == text:
                return expanded
            text = expanded
        return text

    def flag(self, key: str) -> bool:
        """Boolean flag: only the literal string ``"false"`` is false.

        An unset flag defaults to ``"false"``; any other value, including the
        empty string produced by a bare ``--key``, is true.
        """
        return self.resolve_placeholders("${%s:false}" % key) != "false"

    def text(self, key: str) -> Optional[str]:
        """Value with surrounding whitespace removed; empty counts as unset."""
        value = self.get(key)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def integer(self, key: str, default: int) -> int:
        value = self.text(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r; using %s", key, value, default)
            return default
