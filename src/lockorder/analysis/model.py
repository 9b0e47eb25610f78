from __future__ import annotations

from dataclasses import dataclass

PAIR_SEPARATOR = "->"


@dataclass(frozen=True)
class LockEvent:
    """One observed acquisition of a named resource's lock.

    ``scope_key`` identifies the enclosing function and is the only field used
    for grouping. ``position`` locates the acquisition call and is carried for
    reporting only.
    """

    resource_type: str
    scope_key: str
    position: str


@dataclass(frozen=True)
class OrderedPair:
    first: str
    second: str

    def reverse(self) -> OrderedPair:
        return OrderedPair(self.second, self.first)

    @property
    def is_self_pair(self) -> bool:
        return self.first == self.second

    def render(self) -> str:
        return f"{self.first}{PAIR_SEPARATOR}{self.second}"

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class PairSite:
    pair: OrderedPair
    scope_key: str
    position: str


PairRecord = dict[OrderedPair, tuple[str, ...]]


@dataclass(frozen=True)
class Conflict:
    forward: OrderedPair
    forward_sites: tuple[str, ...]
    reverse_sites: tuple[str, ...]

    @property
    def reverse(self) -> OrderedPair:
        return self.forward.reverse()

    @property
    def resources(self) -> frozenset[str]:
        return frozenset((self.forward.first, self.forward.second))


@dataclass(frozen=True)
class ReentrantLock:
    resource_type: str
    sites: tuple[str, ...]

    @property
    def pair(self) -> OrderedPair:
        return OrderedPair(self.resource_type, self.resource_type)
