"""Utility functions for the chunkstore service."""

import dataclasses
import os
import typing
from typing import Any
from typing import Callable
from typing import TypeVar


T = TypeVar("T")


def env(key: str, convert: Callable[[str], T] = typing.cast(Callable[[str], T], str), **kwargs: Any) -> T:
    """Load a value from environment variables with optional default and type conversion.

    ``key`` may carry a default after a colon, e.g. ``"PORT:8080"``. Without a
    colon the variable is required and a missing value raises ``KeyError`` when
    the dataclass is instantiated.
    """
    key, partition, default = key.partition(":")

    def default_factory(
        key_val: str = key, default_val: str = default, convert_func: Callable[[str], T] = convert
    ) -> T:
        if key_val in os.environ:
            return convert_func(os.environ[key_val])

        if partition == ":":
            return convert_func(default_val)

        raise KeyError(key_val)

    return typing.cast(T, dataclasses.field(default_factory=default_factory, **kwargs))


def as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}
