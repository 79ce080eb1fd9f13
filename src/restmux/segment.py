"""Path segment tokens used as trie keys."""

from __future__ import annotations

from dataclasses import dataclass, field

WILDCARD_VALUE = "*"


@dataclass(slots=True, frozen=True)
class Segment:
    """One slash-delimited piece of a route key.

    Wildcard segments (``{name}``) all share the canonical value ``"*"``, so
    equality and hashing ignore the wildcard name: every wildcard lands on the
    same child key of a node. The name is only used for binding.
    """

    value: str
    wildcard_name: str | None = field(default=None, compare=False)

    @classmethod
    def parse(cls, token: str) -> Segment:
        if token.startswith("{") and token.endswith("}"):
            return cls(WILDCARD_VALUE, token[1:-1])
        return cls(token)

    @property
    def is_wildcard(self) -> bool:
        return self.wildcard_name is not None

    def __str__(self) -> str:
        if self.wildcard_name is not None:
            return "{" + self.wildcard_name + "}"
        return self.value


WILDCARD = Segment(WILDCARD_VALUE, "wildcard")
