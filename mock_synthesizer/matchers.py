"""Argument matchers: accept any value or one exact value."""

from typing import Any


class Matcher:
    """A predicate over a single argument value."""

    def matches(self, value: Any) -> bool:
        raise NotImplementedError


class _AnyMatcher(Matcher):
    def matches(self, value: Any) -> bool:
        return True

    def __eq__(self, other):
        return isinstance(other, _AnyMatcher)

    def __hash__(self):
        return hash(_AnyMatcher)

    def __repr__(self):
        return "ANY"


class ExactMatcher(Matcher):
    """Matches values equal to ``expected``.

    Types without their own ``__eq__`` are compared by type and ``str()`` so
    that two structurally identical plain objects still match.
    """

    def __init__(self, expected: Any):
        self.expected = expected

    def matches(self, value: Any) -> bool:
        if type(self.expected).__eq__ is object.__eq__:
            if self.expected is value:
                return True
            return type(value) is type(self.expected) and str(self.expected) == str(value)
        return bool(self.expected == value)

    def __eq__(self, other):
        return isinstance(other, ExactMatcher) and self.matches(other.expected)

    def __hash__(self):
        try:
            return hash(self.expected)
        except TypeError:
            return hash(str(self.expected))

    def __repr__(self):
        return f"exact({self.expected!r})"


ANY = _AnyMatcher()


def exact(value: Any) -> ExactMatcher:
    """Match arguments equal to ``value``."""
    return ExactMatcher(value)


def as_matcher(value: Any) -> Matcher:
    """Return ``value`` if it is already a matcher, else an exact matcher."""
    if isinstance(value, Matcher):
        return value
    return ExactMatcher(value)
