"""Typed path parameters: ``{id:int}``, ``{price:float}``, ``{rest:path}``."""

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Converter:
    """How a typed segment is matched in the trie and converted for handlers."""

    pattern: str
    convert: Callable[[str], str | int | float]


CONVERTERS: dict[str, Converter] = {
    "str": Converter(r"[^/]+", str),
    "int": Converter(r"-?\d+", int),
    "float": Converter(r"-?\d+(?:\.\d+)?", float),
    "path": Converter(r".+", str),
}


def convert_param(value: str, param_type: str) -> str | int | float:
    return CONVERTERS[param_type].convert(value)
