"""
Relationship preload specifications.

A model's ``__auto_preload__`` list holds two kinds of entries:

- a relationship name, optionally dotted (``'posts'``, ``'posts.comments'``)
- a callable receiving the in-flight query, free to configure any eager loading::

      def posts_with_comments(query):
          query.preload('posts', lambda posts: posts.preload('comments'))

Entries are classified once into ``NamedPreload`` / ``CallbackPreload``.
Application dispatches through ``PreloadSpec.apply()``.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence, TypeAlias

from sqlmodel_autopreload._exceptions import InvalidRelationshipSpecificationError

QueryModifier = Callable[[Any], Any]


def expand_path(query: Any, segments: Sequence[str]) -> None:
    """
    Turn ``['a', 'b', 'c']`` into "preload a, inside a preload b, inside b preload c".

    :param query: Object with a ``preload(name, configure)`` method
    :param segments: Non-empty relationship path segments
    """
    head, rest = segments[0], segments[1:]

    def configure(sub_query: Any) -> None:
        if rest:
            expand_path(sub_query, rest)

    query.preload(head, configure)


@dataclass(frozen=True, slots=True)
class NamedPreload:
    """Preload by relationship name or dotted relationship path."""

    path: str

    @property
    def name(self) -> str:
        return self.path

    @property
    def value(self) -> str:
        return self.path

    @property
    def segments(self) -> list[str]:
        return self.path.split('.')

    def apply(self, query: Any) -> None:
        if '.' in self.path:
            expand_path(query, self.segments)
        else:
            query.preload(self.path)


@dataclass(frozen=True, slots=True)
class CallbackPreload:
    """Preload configured by a callable. Has no name, so name filters never match it."""

    fn: QueryModifier

    @property
    def name(self) -> None:
        return None

    @property
    def value(self) -> QueryModifier:
        return self.fn

    def apply(self, query: Any) -> None:
        self.fn(query)


PreloadSpec: TypeAlias = NamedPreload | CallbackPreload


def to_preload_spec(value: Any) -> PreloadSpec | None:
    """Classify one declared entry. Returns None for anything unsupported."""
    if isinstance(value, (NamedPreload, CallbackPreload)):
        return value
    if isinstance(value, str):
        return NamedPreload(value)
    if callable(value):
        return CallbackPreload(value)
    return None


def parse_preloads(values: list[Any] | tuple[Any, ...], model_name: str) -> list[PreloadSpec]:
    """
    Classify a declared preload list.

    :param values: Raw ``__auto_preload__`` entries
    :param model_name: Name of the declaring model, for the error message
    :raises InvalidRelationshipSpecificationError: ``values`` is not a list or tuple,
        or an entry is neither a string nor callable
    """
    if not isinstance(values, (list, tuple)):
        raise InvalidRelationshipSpecificationError(model_name)

    specs: list[PreloadSpec] = []
    for value in values:
        spec = to_preload_spec(value)
        if spec is None:
            raise InvalidRelationshipSpecificationError(model_name)
        specs.append(spec)
    return specs


@dataclass
class ModelPreloadState:
    """
    Class-level preload state of one model.

    ``baseline`` is captured once and never changes; ``active`` is what the
    next read applies, and is reset to ``baseline`` after every read.
    """

    baseline: tuple[PreloadSpec, ...]
    active: list[PreloadSpec] = field(init=False)

    def __post_init__(self) -> None:
        self.active = list(self.baseline)

    def without(self, names: set[str]) -> None:
        self.active = [spec for spec in self.active if spec.name is None or spec.name not in names]

    def with_only(self, names: set[str]) -> None:
        self.active = [spec for spec in self.active if spec.name is None or spec.name in names]

    def clear(self) -> None:
        self.active = []

    def restore(self) -> None:
        self.active = list(self.baseline)
