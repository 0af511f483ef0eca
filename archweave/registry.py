"""Transformation registry: content rules, hooks and exclusion rules.

A :class:`Transformations` instance is immutable once built and can be shared
by any number of rewrites, nested ones included. It is assembled through the
fluent :class:`Builder`::

    t = (Transformations.builder()
         .enhance("config.properties", patch)
         .skip(lambda n: n.endswith(".sha1"))
         .add("META-INF/patched", b"yes")
         .build())
    t.transformer("app.jar").transform_file("app.jar", "out.jar")
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Callable, List, Tuple, Union

from .actions import InsertEntry
from .constants import MAX_BUILD_ROUNDS
from .errors import BuilderNotSettled
from .rewriters import Rewriter, rewriter_for
from .signing import is_signed

NamePredicate = Callable[[str], bool]
ContentPredicate = Callable[[str, bytes], bool]
ContentFunction = Callable[[bytes], bytes]
SinkAction = Callable[[object], None]
NameOrPredicate = Union[str, NamePredicate]


def _always(name: str) -> bool:
    return True


@dataclass(frozen=True)
class Equals:
    """Entry predicate matching one exact name."""

    name: str

    def __call__(self, name: str) -> bool:
        return name == self.name


def as_predicate(name_or_predicate: NameOrPredicate) -> NamePredicate:
    if isinstance(name_or_predicate, str):
        return Equals(name_or_predicate)
    if not callable(name_or_predicate):
        raise TypeError(f"expected an entry name or a predicate, got {type(name_or_predicate).__name__}")
    return name_or_predicate


def _encode(text: Union[str, bytes]) -> bytes:
    return text.encode("utf-8") if isinstance(text, str) else bytes(text)


@dataclass(frozen=True)
class Prepend:
    text: bytes

    def __call__(self, data: bytes) -> bytes:
        return self.text + data


@dataclass(frozen=True)
class Append:
    text: bytes

    def __call__(self, data: bytes) -> bytes:
        return data + self.text


@dataclass(frozen=True)
class ReplaceContent:
    text: bytes

    def __call__(self, data: bytes) -> bytes:
        return self.text


@dataclass(frozen=True)
class Transformation:
    condition: NamePredicate
    function: ContentFunction
    takes_name: bool = False  # function is called as function(name, data)


@dataclass(frozen=True)
class Action:
    condition: NamePredicate
    action: SinkAction


class Transformations:
    def __init__(
        self,
        transformations: Tuple[Transformation, ...] = (),
        before_archive: Tuple[Action, ...] = (),
        after_archive: Tuple[Action, ...] = (),
        before_entry: Tuple[Action, ...] = (),
        after_entry: Tuple[Action, ...] = (),
        skip: Tuple[NamePredicate, ...] = (),
        skip_transformation: Tuple[NamePredicate, ...] = (),
        passthrough: Tuple[ContentPredicate, ...] = (),
    ):
        self.transformations = tuple(transformations)
        self._before_archive = tuple(before_archive)
        self._after_archive = tuple(after_archive)
        self._before_entry = tuple(before_entry)
        self._after_entry = tuple(after_entry)
        self.skip_rules = tuple(skip)
        self.skip_transformation_rules = tuple(skip_transformation)
        self.passthrough_rules = (is_signed,) + tuple(passthrough)

    @staticmethod
    def builder() -> "Builder":
        return Builder()

    # -------- content --------

    def is_passthrough(self, name: str, data: bytes) -> bool:
        if any(rule(name) for rule in self.skip_transformation_rules):
            return True
        return any(rule(name, data) for rule in self.passthrough_rules)

    def apply(self, name: str, data: bytes) -> bytes:
        """Fold every matching transformation over ``data`` in registration order."""
        if self.is_passthrough(name, data):
            return data
        for t in self.transformations:
            if not t.condition(name):
                continue
            data = t.function(name, data) if t.takes_name else t.function(data)
        return data

    def should_skip(self, name: str) -> bool:
        return any(rule(name) for rule in self.skip_rules)

    # -------- hooks --------

    @staticmethod
    def _run(actions: Tuple[Action, ...], name: str, sink) -> None:
        for a in actions:
            if a.condition(name):
                a.action(sink)

    def before_archive(self, sink) -> None:
        self._run(self._before_archive, "", sink)

    def after_archive(self, sink) -> None:
        self._run(self._after_archive, "", sink)

    def before_entry(self, name: str, sink) -> None:
        self._run(self._before_entry, name, sink)

    def after_entry(self, name: str, sink) -> None:
        self._run(self._after_entry, name, sink)

    # -------- rewriter selection --------

    def transformer_for(self, name: str) -> Rewriter:
        return rewriter_for(name, self)

    def transformer(self, path) -> Rewriter:
        return self.transformer_for(os.path.basename(os.fspath(path)))


class _NestedRewrite:
    """Content function rewriting an entry as a container of its own.

    The registry it runs against is only known once the enclosing builder has
    been built, so every build binds a fresh instance of its own.
    """

    def __init__(self):
        self.transformations = None

    def bind(self, transformations: Transformations) -> None:
        self.transformations = transformations

    def __call__(self, name: str, data: bytes) -> bytes:
        return self.transformations.transformer_for(name).apply(data)


class Builder:
    def __init__(self):
        self._transformations: List[Transformation] = []
        self._before_archive: List[Action] = []
        self._after_archive: List[Action] = []
        self._before_entry: List[Action] = []
        self._after_entry: List[Action] = []
        self._skip: List[NamePredicate] = []
        self._skip_transformation: List[NamePredicate] = []
        self._passthrough: List[ContentPredicate] = []
        self._consumers: List[Callable[["Builder"], object]] = []

    # -------- content rules --------

    def enhance(self, name_or_predicate: NameOrPredicate, function: ContentFunction) -> "Builder":
        self._transformations.append(Transformation(as_predicate(name_or_predicate), function))
        return self

    def prepend(self, name_or_predicate: NameOrPredicate, text: Union[str, bytes]) -> "Builder":
        return self.enhance(name_or_predicate, Prepend(_encode(text)))

    def append(self, name_or_predicate: NameOrPredicate, text: Union[str, bytes]) -> "Builder":
        return self.enhance(name_or_predicate, Append(_encode(text)))

    def replace(self, name_or_predicate: NameOrPredicate, text: Union[str, bytes]) -> "Builder":
        return self.enhance(name_or_predicate, ReplaceContent(_encode(text)))

    def recurse(self, name_or_predicate: NameOrPredicate) -> "Builder":
        self._transformations.append(Transformation(as_predicate(name_or_predicate), _NestedRewrite(), takes_name=True))
        return self

    # -------- hooks --------

    def before(self, action: SinkAction) -> "Builder":
        self._before_archive.append(Action(_always, action))
        return self

    def after(self, action: SinkAction) -> "Builder":
        self._after_archive.append(Action(_always, action))
        return self

    def before_entry(self, name_or_predicate: NameOrPredicate, action: SinkAction) -> "Builder":
        self._before_entry.append(Action(as_predicate(name_or_predicate), action))
        return self

    def after_entry(self, name_or_predicate: NameOrPredicate, action: SinkAction) -> "Builder":
        self._after_entry.append(Action(as_predicate(name_or_predicate), action))
        return self

    def add(self, name: str, content) -> "Builder":
        return self.after(InsertEntry(name, content))

    # -------- exclusion --------

    def skip(self, predicate: NameOrPredicate) -> "Builder":
        self._skip.append(as_predicate(predicate))
        return self

    def skip_transformation(self, predicate: NameOrPredicate) -> "Builder":
        self._skip_transformation.append(as_predicate(predicate))
        return self

    def passthrough(self, predicate: ContentPredicate) -> "Builder":
        self._passthrough.append(predicate)
        return self

    # -------- composition --------

    def and_(self, consumer: Callable[["Builder"], object]) -> "Builder":
        """Queue ``consumer(builder)`` to run at :meth:`build` time."""
        self._consumers.append(consumer)
        return self

    def _settle(self) -> None:
        rounds = 0
        while self._consumers:
            if rounds >= MAX_BUILD_ROUNDS:
                raise BuilderNotSettled(rounds)
            rounds += 1
            pending, self._consumers = self._consumers, []
            for consumer in pending:
                consumer(self)

    def build(self) -> Transformations:
        self._settle()
        nested = _NestedRewrite()
        transformations = tuple(
            dataclasses.replace(t, function=nested) if isinstance(t.function, _NestedRewrite) else t
            for t in self._transformations
        )
        built = Transformations(
            transformations=transformations,
            before_archive=tuple(self._before_archive),
            after_archive=tuple(self._after_archive),
            before_entry=tuple(self._before_entry),
            after_entry=tuple(self._after_entry),
            skip=tuple(self._skip),
            skip_transformation=tuple(self._skip_transformation),
            passthrough=tuple(self._passthrough),
        )
        nested.bind(built)
        return built
