"""
Identifier normalization for pivot operations.

Callers hand pivot operations many shapes of "which related rows": a model,
several models, a list of keys, a mapping of key -> per-row pivot attributes,
or a bare key. ``IdsInput.of`` classifies the raw value once and
``normalize_ids`` turns the tagged input into the ordered identifier list plus
the identifier -> attributes mapping carried by pivot events.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol, Union, runtime_checkable

Identifier = Union[int, str]


@runtime_checkable
class Model(Protocol):
    """Anything with a primary key accessor."""

    def get_key(self) -> Any:
        ...


class IdsInputKind(str, Enum):
    MODEL = "model"
    MODELS = "models"
    KEYED = "keyed"
    SCALAR = "scalar"
    UNSUPPORTED = "unsupported"


def _is_identifier(value: Any) -> bool:
    # bool is an int subclass but never a key
    return isinstance(value, (int, str)) and not isinstance(value, bool)


@dataclass(frozen=True)
class IdsInput:
    kind: IdsInputKind
    value: Any = None

    @classmethod
    def model(cls, model: Model) -> "IdsInput":
        return cls(IdsInputKind.MODEL, model)

    @classmethod
    def models(cls, models: Iterable[Model]) -> "IdsInput":
        return cls(IdsInputKind.MODELS, tuple(models))

    @classmethod
    def keyed(cls, entries: Union[Mapping[Any, Any], Iterable[Any]]) -> "IdsInput":
        if isinstance(entries, Mapping):
            return cls(IdsInputKind.KEYED, tuple(entries.items()))
        return cls(IdsInputKind.KEYED, tuple(enumerate(entries)))

    @classmethod
    def scalar(cls, identifier: Identifier) -> "IdsInput":
        return cls(IdsInputKind.SCALAR, identifier)

    @classmethod
    def of(cls, value: Any) -> "IdsInput":
        """
        Classify a raw caller value.

        Any iterable other than a string or bytes (lists, sets, generators)
        is materialized once: all models makes it ``MODELS``, anything else
        ``KEYED`` by position. Anything that is not a model, a mapping, such
        an iterable or a bare int/str key is ``UNSUPPORTED`` and later
        normalizes to nothing.
        """
        if isinstance(value, IdsInput):
            return value
        if isinstance(value, Model):
            return cls.model(value)
        if isinstance(value, Mapping):
            return cls.keyed(value)
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray)):
            items = list(value)
            if items and all(isinstance(item, Model) for item in items):
                return cls.models(items)
            return cls.keyed(items)
        if _is_identifier(value):
            return cls.scalar(value)
        return cls(IdsInputKind.UNSUPPORTED, value)


@dataclass
class NormalizedIds:
    ids: list[Identifier] = field(default_factory=list)
    attributes: dict[Identifier, dict[str, Any]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.ids)


def normalize_ids(ids: Any, attributes: Mapping[str, Any] | None = None) -> NormalizedIds:
    """
    Normalize caller input into identifiers and per-identifier attributes.

    Args:
        ids: An ``IdsInput`` or any raw value accepted by ``IdsInput.of``
        attributes: Base pivot attributes applied to every identifier

    Returns:
        ``NormalizedIds`` whose ``ids`` are unique, in first-seen order, and
        always equal to the keys of ``attributes``.

    Keyed entries whose value is itself a mapping are ``identifier ->
    override attributes`` (override wins); an int or str entry value is the
    identifier and any other entry value is skipped. A repeated identifier
    keeps its first position and takes the attributes of its last
    occurrence. Unsupported input yields an empty result rather than an
    error.
    """
    ids_input = IdsInput.of(ids)
    base = dict(attributes or {})
    mapping: dict[Identifier, dict[str, Any]] = {}

    if ids_input.kind is IdsInputKind.MODEL:
        mapping[ids_input.value.get_key()] = dict(base)
    elif ids_input.kind is IdsInputKind.MODELS:
        for model in ids_input.value:
            mapping[model.get_key()] = dict(base)
    elif ids_input.kind is IdsInputKind.KEYED:
        for key, entry in ids_input.value:
            if isinstance(entry, Mapping):
                mapping[key] = {**base, **entry}
            elif _is_identifier(entry):
                mapping[entry] = dict(base)
    elif ids_input.kind is IdsInputKind.SCALAR:
        mapping[ids_input.value] = dict(base)

    return NormalizedIds(ids=list(mapping), attributes=mapping)


def parse_id(ids: Any) -> Any:
    """
    Reduce identifier-bearing input to the single related key it targets.

    Models yield their key and scalars themselves; other shapes yield their
    first normalized identifier, or None when there is none.
    """
    ids_input = IdsInput.of(ids)
    if ids_input.kind is IdsInputKind.MODEL:
        return ids_input.value.get_key()
    if ids_input.kind is IdsInputKind.SCALAR:
        return ids_input.value
    normalized = normalize_ids(ids_input)
    return normalized.ids[0] if normalized.ids else None
