"""Runtime support imported by generated mock classes.

A generated mock owns one ``MockState``. The state holds a slot per method
tag (a property's getter and setter tags share one slot) and implements the
counting, logging, stub lookup and callback bookkeeping that the generated
accessors, ``given``, ``verify`` and ``trigger`` delegate to.
"""

import inspect
import logging
import os
import typing
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from mock_synthesizer.errors import MockFailure, UnstubbedCallError, VerificationError
from mock_synthesizer.matchers import ANY, Matcher, as_matcher, exact
from mock_synthesizer.models import Shape

logger = logging.getLogger(__name__)

__all__ = [
    "ANY",
    "MISSING",
    "MockState",
    "Shape",
    "SlotSpec",
    "abort_on_failure",
    "callback_parameter",
    "exact",
    "interface_default",
    "matchers_for",
    "raise_failure",
    "require_return",
    "resolve_overload",
]

# Marker global set by generated modules so call-site lookup can skip them
GENERATED_MARKER = "__mock_synthesizer_generated__"


class _Missing:
    def __repr__(self):
        return "MISSING"


MISSING = _Missing()

FailureHandler = Callable[[MockFailure], None]


def raise_failure(failure: MockFailure) -> None:
    """Default failure handler: raise, ending the current test."""
    raise failure


def abort_on_failure(failure: MockFailure) -> None:
    """Failure handler that terminates the process after logging the failure."""
    logger.critical(f"Mock failure: {failure}")
    os.abort()


@dataclass(frozen=True)
class SlotSpec:
    """Layout of one method tag, as emitted by the generator."""

    tag: str
    shape: Shape
    parameters: tuple[str, ...] = ()
    callbacks: tuple[str, ...] = ()
    returns: bool = False
    property: str | None = None


@dataclass
class CounterSlot:
    calls: int = 0


@dataclass
class ReturnSlot:
    calls: int = 0
    value: Any = MISSING


@dataclass
class CallLogSlot:
    # argument tuples as passed; builtin containers are copied on record
    calls: list[tuple] = field(default_factory=list)
    stubs: list[tuple[tuple[Matcher, ...], Any]] = field(default_factory=list)

    def install(self, matchers: tuple[Matcher, ...], value: Any) -> None:
        # The same pattern replaces its previous stub, others are kept
        self.stubs = [(m, v) for m, v in self.stubs if m != matchers]
        self.stubs.append((matchers, value))

    def lookup(self, arguments: tuple) -> Any:
        for matchers, value in reversed(self.stubs):
            if all(m.matches(a) for m, a in zip(matchers, arguments)):
                return value
        return MISSING


@dataclass
class CallbackSlot(CallLogSlot):
    pending: dict[str, list[Callable]] = field(default_factory=dict)


@dataclass
class PropertySlot:
    gets: int = 0
    sets: list = field(default_factory=list)
    value: Any = MISSING


def _tag(method: Any) -> str:
    return getattr(method, "value", method)


def _format_arguments(names: Iterable[str], values: Iterable[Any]) -> str:
    return ", ".join(f"{n}={v!r}" for n, v in zip(names, values))


def matchers_for(
    method: Any, arguments: dict[str, Any], names: tuple[str, ...]
) -> tuple[Matcher, ...]:
    """Turn keyword arguments into one matcher per declared parameter.

    Omitted parameters match anything; plain values match exactly.

    Raises:
        TypeError: If an argument does not name a declared parameter
    """
    unknown = sorted(set(arguments) - set(names))
    if unknown:
        raise TypeError(
            f"{_tag(method)} has no parameter(s) {', '.join(unknown)}; "
            f"expected {names or 'none'}"
        )
    return tuple(as_matcher(arguments.get(name, ANY)) for name in names)


def require_return(method: Any, value: Any) -> Any:
    """Check that ``given`` was passed a return value for a returning tag."""
    if value is MISSING:
        raise TypeError(f"given({_tag(method)}) requires will_return=")
    return value


def callback_parameter(
    method: Any, parameter: str | None, names: tuple[str, ...]
) -> str:
    """Pick the callback parameter a trigger applies to."""
    if parameter is None:
        if len(names) != 1:
            raise TypeError(
                f"{_tag(method)} takes several callbacks; pass parameter= one of {names}"
            )
        return names[0]
    if parameter not in names:
        raise TypeError(f"{_tag(method)} has no callback parameter '{parameter}'")
    return parameter


def resolve_overload(
    name: str,
    candidates: tuple[tuple[str, Callable], ...],
    args: tuple,
    kwargs: dict[str, Any],
) -> str:
    """Pick the first overload whose signature accepts the call.

    Args:
        name: The public member name, for the error message
        candidates: (tag, implementation) pairs in declaration order
        args: Positional arguments of the call
        kwargs: Keyword arguments of the call

    Returns:
        The method tag of the chosen overload

    Raises:
        TypeError: If no overload accepts the arguments
    """
    for tag, implementation in candidates:
        try:
            inspect.signature(implementation).bind(*args, **kwargs)
        except TypeError:
            continue
        return tag
    raise TypeError(
        f"No overload of {name} accepts {len(args)} positional argument(s) "
        f"and keyword(s) {sorted(kwargs)}"
    )


def interface_default(interface: type, member: str, parameter: str) -> Any:
    """Return the default ``interface.member`` declares for ``parameter``.

    Generated mocks call this for defaults that are not literals, so the
    expression is evaluated where the interface wrote it. Overloads are
    searched in declaration order, then the implementation.

    Raises:
        TypeError: If no declaration of the member has that default
    """
    function = getattr(interface, member)
    for candidate in [*typing.get_overloads(function), function]:
        try:
            declared = inspect.signature(candidate).parameters.get(parameter)
        except (TypeError, ValueError):
            continue
        if declared is not None and declared.default is not declared.empty:
            return declared.default
    raise TypeError(
        f"{interface.__name__}.{member} declares no default for '{parameter}'"
    )


def _snapshot(value: Any) -> Any:
    """Copy builtin containers so later mutation does not rewrite the call log.

    Other objects, callables included, are logged by reference.
    """
    kind = type(value)
    if kind is list or kind is tuple:
        return kind(_snapshot(item) for item in value)
    if kind is dict:
        return {key: _snapshot(item) for key, item in value.items()}
    if kind is set or kind is bytearray:
        return kind(value)
    return value


def _caller_location() -> str | None:
    """Return file:line of the first frame outside mock machinery."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            module_globals = frame.f_globals
            if (
                module_globals.get("__name__") != __name__
                and not module_globals.get(GENERATED_MARKER)
            ):
                return f"{frame.f_code.co_filename}:{frame.f_lineno}"
            frame = frame.f_back
        return None
    finally:
        del frame


class MockState:
    """Per-instance call counters, logs, stubs and pending callbacks.

    Args:
        layout: One SlotSpec per method tag
        failure_handler: Called with every MockFailure; defaults to raising
    """

    def __init__(
        self,
        layout: Iterable[SlotSpec],
        failure_handler: FailureHandler | None = None,
    ):
        self.failure_handler = failure_handler or raise_failure
        self.specs: dict[str, SlotSpec] = {}
        self.slots: dict[str, Any] = {}
        properties: dict[str, PropertySlot] = {}

        for spec in layout:
            self.specs[spec.tag] = spec
            if spec.property is not None:
                self.slots[spec.tag] = properties.setdefault(
                    spec.property, PropertySlot()
                )
            elif spec.shape is Shape.VOID_NO_ARG:
                self.slots[spec.tag] = CounterSlot()
            elif spec.shape is Shape.RETURNING_NO_ARG:
                self.slots[spec.tag] = ReturnSlot()
            elif spec.shape is Shape.CALLBACK_ARG:
                self.slots[spec.tag] = CallbackSlot(
                    pending={name: [] for name in spec.callbacks}
                )
            else:
                self.slots[spec.tag] = CallLogSlot()

    def _slot(self, method: Any) -> Any:
        return self.slots[_tag(method)]

    def _unstubbed(
        self, tag: str, detail: str = "", label: str | None = None
    ) -> UnstubbedCallError:
        message = f"No stub for {label or tag}{detail}"
        failure = UnstubbedCallError(message, tag)
        self.failure_handler(failure)
        # Nothing sensible to return, so stop even if the handler did not
        return failure

    # Accessors

    def record_call(self, method: Any) -> None:
        self._slot(method).calls += 1

    def stubbed_return(self, method: Any) -> Any:
        slot = self._slot(method)
        slot.calls += 1
        if slot.value is MISSING:
            raise self._unstubbed(_tag(method))
        return slot.value

    def record_arguments(self, method: Any, arguments: tuple) -> None:
        self._slot(method).calls.append(_snapshot(arguments))

    def stubbed_return_for(self, method: Any, arguments: tuple) -> Any:
        slot = self._slot(method)
        slot.calls.append(_snapshot(arguments))
        value = slot.lookup(arguments)
        if value is MISSING:
            spec = self.specs[_tag(method)]
            detail = f"({_format_arguments(spec.parameters, arguments)})"
            raise self._unstubbed(spec.tag, detail)
        return value

    def register_callbacks(self, method: Any, arguments: tuple) -> Any:
        """Log a call and queue its callbacks until the tag is triggered.

        Returns the stubbed value, keyed by the non-callback arguments, when
        the member declares a return type.
        """
        spec = self.specs[_tag(method)]
        slot = self._slot(method)
        slot.calls.append(_snapshot(arguments))
        for name, value in zip(spec.parameters, arguments):
            if name in slot.pending and value is not None:
                slot.pending[name].append(value)

        if not spec.returns:
            return None
        key = self._stub_key(spec, arguments)
        value = slot.lookup(key)
        if value is MISSING:
            names = [n for n in spec.parameters if n not in spec.callbacks]
            raise self._unstubbed(spec.tag, f"({_format_arguments(names, key)})")
        return value

    def get_property(self, method: Any) -> Any:
        slot = self._slot(method)
        slot.gets += 1
        if slot.value is MISSING:
            spec = self.specs[_tag(method)]
            raise self._unstubbed(spec.tag, label=f"property {spec.property}")
        return slot.value

    def set_property(self, method: Any, value: Any) -> None:
        slot = self._slot(method)
        slot.sets.append(_snapshot(value))
        slot.value = value

    # Stubbing

    def install_return(self, method: Any, value: Any) -> None:
        self._slot(method).value = value

    def install_return_for(
        self, method: Any, matchers: tuple[Matcher, ...], value: Any
    ) -> None:
        spec = self.specs[_tag(method)]
        if spec.shape is Shape.CALLBACK_ARG:
            matchers = self._stub_key(spec, matchers)
        self._slot(method).install(matchers, value)

    def install_property(self, method: Any, value: Any) -> None:
        self._slot(method).value = value

    @staticmethod
    def _stub_key(spec: SlotSpec, values: tuple) -> tuple:
        return tuple(
            v for n, v in zip(spec.parameters, values) if n not in spec.callbacks
        )

    # Verification

    def call_count(self, method: Any) -> int:
        return self._slot(method).calls

    def get_count(self, method: Any) -> int:
        return self._slot(method).gets

    def matching_calls(self, method: Any, matchers: tuple[Matcher, ...]) -> int:
        return sum(
            1
            for arguments in self._slot(method).calls
            if all(m.matches(a) for m, a in zip(matchers, arguments))
        )

    def matching_sets(self, method: Any, matchers: tuple[Matcher, ...]) -> int:
        (matcher,) = matchers
        return sum(1 for value in self._slot(method).sets if matcher.matches(value))

    def check_count(
        self,
        method: Any,
        expected: int,
        actual: int,
        matchers: tuple[Matcher, ...] = (),
    ) -> None:
        if actual == expected:
            return
        spec = self.specs[_tag(method)]
        location = _caller_location()
        names = spec.parameters
        pattern = f"({_format_arguments(names, matchers)})" if matchers else ""
        message = (
            f"Verify failed for {spec.tag}{pattern}: "
            f"expected {expected} call(s), got {actual}"
        )
        if location:
            message += f" at {location}"
        self.failure_handler(
            VerificationError(message, spec.tag, expected, actual, location)
        )

    # Callbacks

    def drain_callbacks(self, method: Any, parameter: str, args: tuple) -> int:
        """Invoke and clear the pending callbacks of one parameter, in FIFO order."""
        slot = self._slot(method)
        pending = slot.pending[parameter]
        slot.pending[parameter] = []
        for callback in pending:
            callback(*args)
        logger.debug(f"Triggered {len(pending)} callback(s) for {_tag(method)}")
        return len(pending)

    def pending_count(self, method: Any, parameter: str) -> int:
        return len(self._slot(method).pending[parameter])
