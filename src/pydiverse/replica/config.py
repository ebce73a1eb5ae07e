# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause
from __future__ import annotations

import os
import threading
from collections.abc import Iterable
from contextvars import ContextVar, Token
from pathlib import Path
from threading import Lock
from typing import Any, ClassVar

import structlog
import yaml
from attrs import evolve, field, fields, frozen, validators

from pydiverse.replica.core.classify import Classifier, get_classifier
from pydiverse.replica.errors import ConfigError
from pydiverse.replica.identity import IdentityDict
from pydiverse.replica.util import import_type

CONFIG_ENV_VAR = "PYDIVERSE_REPLICA_CONFIG"


class BaseContext:
    _context_var: ClassVar[ContextVar]
    _lock: Lock = Lock()
    _thread_state: dict[int, list[Token]] = {}

    def __enter__(self):
        with self._lock:
            _id = id(self) + (threading.get_ident() << 64)
            if _id not in self._thread_state:
                self._thread_state[_id] = []
            token = self._context_var.set(self)
            self._thread_state[_id].append(token)
        return self

    def __exit__(self, *_):
        with self._lock:
            _id = id(self) + (threading.get_ident() << 64)
            _tokens = self._thread_state[_id]
            self._context_var.reset(_tokens.pop())
            if len(_tokens) == 0:
                del self._thread_state[_id]


def _type_paths(value: Iterable[str] | str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@frozen(slots=False)
class ReplicaConfig(BaseContext):
    """Settings for deep copies.

    A config can be activated for a block of code using ``with``; the
    innermost active config is returned by :py:meth:`ReplicaConfig.get`.

    Attributes
    ----------
    max_depth :
        Maximum depth of the copy work-stack. Graphs nested deeper than this
        raise :py:class:`~pydiverse.replica.errors.CircularityNotResolvedError`.
    passthrough_handles :
        Share resource handles (files, sockets, locks, ...) by reference
        instead of failing with
        :py:class:`~pydiverse.replica.errors.UnsupportedTypeError`.
    construct_fallback :
        If a class can't be allocated without running its constructor, call
        it without arguments instead. This changes semantics for classes whose
        constructor establishes invariants or has side effects.
    leaf_types :
        Import paths of additional classes whose values are immutable.
    passthrough_types :
        Import paths of additional classes whose values are shared by reference.
    """

    max_depth: int = field(default=100_000, validator=[validators.instance_of(int), validators.gt(0)])
    passthrough_handles: bool = field(default=False, validator=validators.instance_of(bool))
    construct_fallback: bool = field(default=False, validator=validators.instance_of(bool))
    leaf_types: tuple[str, ...] = field(
        default=(), converter=_type_paths, validator=validators.deep_iterable(validators.instance_of(str))
    )
    passthrough_types: tuple[str, ...] = field(
        default=(), converter=_type_paths, validator=validators.deep_iterable(validators.instance_of(str))
    )
    # classifiers derived by create_classifier, per base classifier
    _derived: IdentityDict = field(factory=IdentityDict, init=False, eq=False, repr=False)

    _context_var = ContextVar("replica_config")
    _default: ClassVar[ReplicaConfig | None] = None

    @classmethod
    def get(cls) -> ReplicaConfig:
        """Returns the innermost active config, or the default config."""
        try:
            return cls._context_var.get()
        except LookupError:
            return cls.default()

    @classmethod
    def default(cls) -> ReplicaConfig:
        """Config used outside any ``with`` block.

        If the environment variable :envvar:`PYDIVERSE_REPLICA_CONFIG` is set,
        the file it points to gets loaded. Otherwise, all settings have their
        default values.
        """
        if cls._default is None:
            if os.environ.get(CONFIG_ENV_VAR):
                cls._default = cls.load()
            else:
                cls._default = cls()
        return cls._default

    @classmethod
    def reset_default(cls):
        """Forget the cached default config (e.g. after changing the environment)."""
        cls._default = None

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any] | None, source: str | Path | None = None) -> ReplicaConfig:
        where = f" in {source}" if source else ""
        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigError(f"Replica config must be a mapping, found {type(config_dict).__name__}{where}")

        known = {a.name for a in fields(cls) if a.init}
        unknown = set(config_dict) - known
        if unknown:
            raise ConfigError(f"Unknown replica config keys {sorted(unknown)}{where}; valid keys: {sorted(known)}")

        try:
            return cls(**config_dict)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid replica config{where}: {e}") from e

    @classmethod
    def load(cls, path: str | Path | None = None) -> ReplicaConfig:
        """Load a config from a yaml file.

        :param path: Path of a config file, or of a directory containing a
            ``replica.yaml`` file. If ``None``, the file is searched for
            using :py:func:`find_config`.
        """
        if path is None:
            path = find_config()
        else:
            path = Path(path).expanduser()
            if path.is_dir():
                path = find_config(dirs_to_check=[path])

        path = Path(path)
        with open(path, encoding="utf-8") as fh:
            try:
                config_dict = yaml.safe_load(fh)
            except yaml.YAMLError as e:
                raise ConfigError(f"Can't parse replica config file {path}: {e}") from e

        # the file may hold a `replica:` section next to other tools' settings
        if isinstance(config_dict, dict) and "replica" in config_dict:
            config_dict = config_dict["replica"]

        logger = structlog.get_logger(logger_name=cls.__name__)
        logger.debug("Loaded replica config", path=str(path))
        return cls.from_dict(config_dict, source=path)

    def evolve(self, **changes) -> ReplicaConfig:
        return evolve(self, **changes)

    def create_classifier(self, base: Classifier | None = None) -> Classifier:
        """Classifier implementing this config's type policies

        Registrations of ``base`` (the process-wide classifier by default)
        are inherited. ``base`` itself is never modified. The derived
        classifier is reused until ``base`` gets new registrations.
        """
        base = base or get_classifier()
        if not (self.leaf_types or self.passthrough_types or self.passthrough_handles != base.passthrough_handles):
            return base

        generation = base.generation
        cached_generation, classifier = self._derived.get(base, (None, None))
        if cached_generation == generation:
            return classifier

        try:
            leaf_types = [import_type(path) for path in self.leaf_types]
            passthrough_types = [import_type(path) for path in self.passthrough_types]
        except (ImportError, AttributeError, TypeError) as e:
            raise ConfigError(f"Can't resolve type listed in replica config: {e}") from e

        classifier = base.copy(passthrough_handles=self.passthrough_handles)
        classifier.register_many(leaf_types, passthrough_types)
        self._derived[base] = (generation, classifier)
        return classifier


def find_config(
    name: str | None = None,
    extensions: Iterable[str] | None = None,
    dirs_to_check: Iterable[str | Path] | None = None,
) -> str:
    """
    Searches for a replica configuration file.

    The path specified in the :envvar:`PYDIVERSE_REPLICA_CONFIG` environment
    variable gets checked first. Else it searches in the following locations:

    - Current working directory
    - All parent directories
    - The user folder

    :param name: The name of the config file
    :param extensions: Iterable of extensions which are looked for
    :param dirs_to_check: Iterable of directories to look for configuration file
    :return: The filename path of the replica config file.
    :raises FileNotFoundError: if no config file could be found.
    """

    if name is None:
        name = "replica"

    if extensions is None:
        extensions = [".yaml", ".yml"]

    if dirs_to_check is None:
        dirs_to_check = [
            Path.cwd(),
            *Path.cwd().resolve().parents,
            Path("~").expanduser(),
        ]

        if path := os.environ.get(CONFIG_ENV_VAR, None):
            path = Path(path).expanduser().resolve()
            if path.is_file():
                return str(path)

            for extension in extensions:
                candidate = path / (name + extension)
                if candidate.is_file():
                    return str(candidate)
    else:
        dirs_to_check = [Path(path) for path in dirs_to_check]
        if path := os.environ.get(CONFIG_ENV_VAR, None):
            logger = structlog.get_logger(module=__name__)
            logger.info(f"ignoring {CONFIG_ENV_VAR} environment variable", path=path)

    for path in dirs_to_check:
        for extension in extensions:
            config_path = (path / (name + extension)).resolve()
            if config_path.is_file():
                return str(config_path)

    raise FileNotFoundError(f"No config file found with name={name}, extensions={extensions}")
