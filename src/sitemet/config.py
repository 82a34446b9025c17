"""
Run configuration parsing and validation.

An ingest run is described by a TOML file:

    project = "fluxnet_forcing"
    root = "~/data"

    [source]
    name = "cru"
    dir = "{root}/cru_ts4.01"

    [calendar]
    policy = "noleap"

    [variables]
    temp = "tmp"
    prec = "pre"
    wetd = "wet"

    [paths]
    sites = "{root}/siteinfo.csv"

Variable values are archive tokens: a string, a list of strings (summed, e.g.
WATCH rain + snow) or ``true`` for the archive's default token.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import toml

from sitemet.calendar import CALENDAR_POLICIES
from sitemet.exceptions import ConfigurationError


@dataclass
class SourceConfig:
    """Archive location and per-archive policies."""

    name: str
    dir: str
    timescale: str = "d"
    template: Optional[str] = None
    nearest_valid_cell: Optional[bool] = None
    invalid_sentinel: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceConfig":
        if "name" not in data:
            raise ConfigurationError("Missing required config key: source.name")
        if "dir" not in data:
            raise ConfigurationError("Missing required config key: source.dir")
        sentinel = data.get("invalid_sentinel")
        return cls(
            name=str(data["name"]).lower(),
            dir=os.path.expanduser(str(data["dir"])),
            timescale=str(data.get("timescale", "d")).lower(),
            template=data.get("template"),
            nearest_valid_cell=data.get("nearest_valid_cell"),
            invalid_sentinel=float(sentinel) if sentinel is not None else None,
        )


@dataclass
class GeneratorConfig:
    """Precipitation weather generator settings."""

    seed: Optional[int] = None
    gamma_shape: float = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratorConfig":
        seed = data.get("seed")
        return cls(
            seed=int(seed) if seed is not None else None,
            gamma_shape=float(data.get("gamma_shape", 1.0)),
        )


@dataclass
class RunConfig:
    strict: bool = False
    progress: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        return cls(strict=bool(data.get("strict", False)), progress=bool(data.get("progress", False)))


@dataclass
class IngestConfig:
    """Complete, validated description of one ingest run."""

    source: SourceConfig
    variables: Dict[str, Optional[List[str]]]
    calendar_policy: str = "noleap"
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    run: RunConfig = field(default_factory=RunConfig)
    project_name: Optional[str] = None
    root_path: Optional[str] = None
    sites_path: Optional[str] = None
    conf_file_path: Optional[str] = None
    resolved_config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_toml(cls, conf_file_path, root_override=None) -> "IngestConfig":
        """Read and validate a TOML configuration file."""
        try:
            with open(conf_file_path, "r") as f:
                raw_config = toml.load(f)
        except (OSError, toml.TomlDecodeError) as exc:
            raise ConfigurationError(f"Cannot read config {conf_file_path}: {exc}") from exc

        config = cls.from_dict(raw_config, root_override=root_override)
        config.conf_file_path = str(conf_file_path)
        return config

    @classmethod
    def from_dict(cls, raw_config: Dict[str, Any], root_override=None) -> "IngestConfig":
        """Build from an already-parsed mapping (same layout as the TOML file)."""
        project_name = raw_config.get("project")
        root = root_override or raw_config.get("root")
        root_path = os.path.expanduser(root) if root else None

        base_format_vars = {"root": root_path, "project": project_name}
        resolved = cls._resolve_paths(raw_config, {k: v for k, v in base_format_vars.items() if v})

        if "source" not in resolved:
            raise ConfigurationError("Missing required config section: [source]")

        calendar_conf = resolved.get("calendar", {})
        paths_conf = resolved.get("paths", {})
        sites_path = paths_conf.get("sites")

        config = cls(
            source=SourceConfig.from_dict(resolved["source"]),
            variables=cls._parse_variables(resolved.get("variables", {})),
            calendar_policy=str(calendar_conf.get("policy", "noleap")).lower(),
            generator=GeneratorConfig.from_dict(resolved.get("generator", {})),
            run=RunConfig.from_dict(resolved.get("run", {})),
            project_name=project_name,
            root_path=root_path,
            sites_path=os.path.expanduser(sites_path) if sites_path else None,
            resolved_config=resolved,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check the configuration against the selected archive adapter.

        Raises:
            ConfigurationError: on any problem that makes the run impossible.
        """
        from sitemet.sources import ADAPTERS

        if self.calendar_policy not in CALENDAR_POLICIES:
            raise ConfigurationError(
                f"Unknown calendar policy {self.calendar_policy!r}; "
                f"expected one of {', '.join(CALENDAR_POLICIES)}"
            )
        if not self.variables:
            raise ConfigurationError("No variables requested: [variables] is empty")
        if self.generator.gamma_shape <= 0:
            raise ConfigurationError("generator.gamma_shape must be positive")

        adapter_cls = ADAPTERS.get(self.source.name)
        if adapter_cls is None:
            raise ConfigurationError(
                f"Unknown source {self.source.name!r}; expected one of {', '.join(sorted(ADAPTERS))}"
            )
        adapter_cls.validate_config(self)

    @property
    def requested_variables(self) -> List[str]:
        return list(self.variables)

    @staticmethod
    def _parse_variables(data: Dict[str, Any]) -> Dict[str, Optional[List[str]]]:
        variables = {}
        for name, token in data.items():
            if token is True:
                variables[name] = None
            elif isinstance(token, str) and token:
                variables[name] = [token]
            elif isinstance(token, list) and token and all(isinstance(t, str) for t in token):
                variables[name] = list(token)
            else:
                raise ConfigurationError(
                    f"variables.{name}: expected a token string, a list of tokens or true, got {token!r}"
                )
        return variables

    def __str__(self):
        return (
            f"IngestConfig:\n"
            f"  Project Name: {self.project_name}\n"
            f"  Source: {self.source.name} ({self.source.dir})\n"
            f"  Variables: {', '.join(self.variables)}\n"
            f"  Calendar: {self.calendar_policy}\n"
            f"  Sites: {self.sites_path}\n"
            f"  Strict: {self.run.strict}"
        )

    @staticmethod
    def _resolve_paths(raw_config, base_format_vars):
        """Substitute {placeholders} across sections until nothing changes."""
        config = json.loads(json.dumps(raw_config))
        format_vars = {k: (os.path.expanduser(v) if isinstance(v, str) else v)
                       for k, v in base_format_vars.items()}

        def _format(value):
            try:
                return value.format(**format_vars)
            except (KeyError, IndexError, ValueError):
                return value

        max_iterations = 10
        for _ in range(max_iterations):
            changed = 0
            for section_name, section_content in config.items():
                if not isinstance(section_content, dict):
                    continue
                for key, value in section_content.items():
                    # templates keep their own {token}/{year}/{month} fields
                    if key == "template" or not isinstance(value, str):
                        continue
                    formatted = _format(value) if "{" in value else value
                    if formatted != value:
                        section_content[key] = formatted
                        changed += 1
                    if "{" not in formatted:
                        format_vars[key] = formatted
            if changed == 0:
                break

        for section_content in config.values():
            if isinstance(section_content, dict):
                for key, value in section_content.items():
                    if isinstance(value, str) and value.startswith("~"):
                        section_content[key] = os.path.expanduser(value)
        return config
