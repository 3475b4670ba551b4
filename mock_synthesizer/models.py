"""Data models for interface declarations and mock plans."""

import json
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Parameter:
    """A declared function parameter."""

    name: str
    type: str
    is_callable: bool = False  # decided structurally by the declaration builder
    default: str | None = None  # source text of the default; None if required
    keyword_only: bool = False


@dataclass(frozen=True)
class FunctionMember:
    """A method declared on the interface."""

    name: str
    parameters: tuple[Parameter, ...] = ()
    return_type: str | None = None  # None means the method returns nothing

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parameters)

    @property
    def has_callback(self) -> bool:
        return any(p.is_callable for p in self.parameters)


@dataclass(frozen=True)
class PropertyMember:
    """A read/write attribute declared on the interface."""

    name: str
    type: str


Member = FunctionMember | PropertyMember


@dataclass(frozen=True)
class InterfaceDeclaration:
    """An interface: its name and its members in declaration order."""

    name: str
    members: tuple[Member, ...] = ()


class Shape(Enum):
    """The code shape chosen for one call site."""

    VOID_NO_ARG = "void_no_arg"
    RETURNING_NO_ARG = "returning_no_arg"
    VOID_WITH_ARGS = "void_with_args"
    RETURNING_WITH_ARGS = "returning_with_args"
    PROPERTY_GET = "property_get"
    PROPERTY_SET = "property_set"
    CALLBACK_ARG = "callback_arg"


@dataclass(frozen=True)
class ClassifiedMember:
    """A member paired with its method tag and shape."""

    tag: str
    shape: Shape
    member: Member

    @property
    def name(self) -> str:
        return self.member.name

    @property
    def parameters(self) -> tuple[Parameter, ...]:
        if isinstance(self.member, FunctionMember):
            return self.member.parameters
        if self.shape is Shape.PROPERTY_SET:
            return (Parameter(name="value", type=self.member.type),)
        return ()

    @property
    def return_type(self) -> str | None:
        if isinstance(self.member, FunctionMember):
            return self.member.return_type
        if self.shape is Shape.PROPERTY_GET:
            return self.member.type
        return None

    @property
    def callback_parameters(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parameters if p.is_callable)


@dataclass
class MockPlan:
    """Everything needed to emit one mock class.

    ``entries`` maps each method tag to its classified member, in declaration
    order. ``overloads`` maps a public member name to the tags sharing it when
    more than one function is declared under that name. ``triggers`` maps
    each trigger helper name to the (tag, callback parameter) it drains.
    """

    interface_name: str
    mock_name: str
    entries: dict[str, ClassifiedMember] = field(default_factory=dict)
    overloads: dict[str, list[str]] = field(default_factory=dict)
    triggers: dict[str, tuple[str, str]] = field(default_factory=dict)

    @property
    def tags(self) -> list[str]:
        return list(self.entries)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "interface": self.interface_name,
            "mock": self.mock_name,
            "methods": [
                {
                    "tag": entry.tag,
                    "shape": entry.shape.value,
                    "member": entry.name,
                    "parameters": [p.name for p in entry.parameters],
                    "returns": entry.return_type,
                }
                for entry in self.entries.values()
            ],
            "triggers": {
                helper: {"tag": tag, "parameter": param}
                for helper, (tag, param) in self.triggers.items()
            },
        }

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
