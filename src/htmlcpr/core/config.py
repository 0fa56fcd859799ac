"""Run configuration for the copier."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, Optional, Union

from .errors import ConfigurationError
from ..utils.validators import get_validator

DEFAULT_SCHEME = "http"

ReferenceHook = Callable[[str, str], bool]
PathHook = Callable[[str, str], str]
SchemelessFixOption = Union[None, str, Callable[[str, str], str]]

# camelCase names accepted by CopyConfig.from_options
OPTION_ALIASES = {
    "schemelessUrlFix": "schemeless_url_fix",
    "norecDir": "norec_dir",
    "blacklistFn": "blacklist_fn",
    "skipFn": "skip_fn",
    "overwritePath": "overwrite_path",
    "defaultScheme": "default_scheme",
}


@dataclass(frozen=True)
class CopyConfig:
    """Options controlling resolution, copy policy and output layout. Immutable for a run."""

    cwd: Optional[str] = None
    base: Optional[str] = None
    schemeless_url_fix: SchemelessFixOption = None
    norec_dir: Union[None, str, Iterable[str]] = None
    blacklist_fn: Optional[ReferenceHook] = None
    skip_fn: Optional[ReferenceHook] = None
    overwrite_path: Optional[PathHook] = None
    default_scheme: str = DEFAULT_SCHEME
    norec_dirs: FrozenSet[str] = field(init=False, default=frozenset())

    def __post_init__(self):
        cwd = os.path.abspath(self.cwd or os.getcwd())
        object.__setattr__(self, "cwd", cwd)
        if self.base is not None:
            if not isinstance(self.base, (str, os.PathLike)):
                raise ConfigurationError(f"base must be a path, got {type(self.base).__name__}")
            object.__setattr__(self, "base", os.path.normpath(os.path.join(cwd, os.fspath(self.base))))

        fix = self.schemeless_url_fix
        if fix is not None and not isinstance(fix, str) and not callable(fix):
            raise ConfigurationError(
                f"schemeless_url_fix must be None, a scheme string or a function, got {type(fix).__name__}"
            )
        validator = get_validator()
        if isinstance(fix, str) and validator.normalize_scheme(fix) is None:
            raise ConfigurationError(f"schemeless_url_fix is not a valid scheme: {fix!r}")
        if validator.normalize_scheme(self.default_scheme) is None:
            raise ConfigurationError(f"default_scheme is not a valid scheme: {self.default_scheme!r}")

        for name in ("blacklist_fn", "skip_fn", "overwrite_path"):
            hook = getattr(self, name)
            if hook is not None and not callable(hook):
                raise ConfigurationError(f"{name} must be callable, got {type(hook).__name__}")

        object.__setattr__(self, "norec_dirs", self._normalize_norec(self.norec_dir))

    @staticmethod
    def _normalize_norec(value) -> FrozenSet[str]:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            value = [value]
        try:
            names = list(value)
        except TypeError:
            raise ConfigurationError(f"norec_dir must be a name or a list of names, got {type(value).__name__}")
        for name in names:
            if not isinstance(name, str) or not name.strip("/\\"):
                raise ConfigurationError(f"Invalid norec_dir entry: {name!r}")
        return frozenset(name.strip("/\\") for name in names)

    @classmethod
    def from_options(cls, **options: Any) -> "CopyConfig":
        """Build a config from keyword options, accepting camelCase option names."""
        kwargs = {}
        for key, value in options.items():
            name = OPTION_ALIASES.get(key, key)
            if name == "norec_dirs" or name not in cls.__dataclass_fields__:
                raise ConfigurationError(f"Unknown option: {key}")
            kwargs[name] = value
        return cls(**kwargs)
