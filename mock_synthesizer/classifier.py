"""Classify interface members into method tags and code shapes."""

import ast
import keyword
import logging

from mock_synthesizer.errors import DeclarationError
from mock_synthesizer.models import (
    ClassifiedMember,
    FunctionMember,
    InterfaceDeclaration,
    Member,
    PropertyMember,
    Shape,
)

logger = logging.getLogger(__name__)

# Attribute names the generated mock defines for itself
RESERVED_MEMBER_NAMES = frozenset({"given", "verify", "trigger", "Method"})
RESERVED_PARAMETER_NAMES = frozenset({"self", "will_return"})


def method_tag(member: FunctionMember) -> str:
    """Derive the method tag of a function from its name and parameter names."""
    if not member.parameters:
        return member.name
    return f"{member.name}_with_{'_'.join(member.parameter_names)}"


def classify_member(member: Member) -> list[ClassifiedMember]:
    """Classify one member.

    Functions yield a single entry. Properties yield two: the getter and the
    setter, in that order.

    Raises:
        DeclarationError: If the member cannot be mocked
    """
    _validate_member(member)

    if isinstance(member, PropertyMember):
        return [
            ClassifiedMember(f"get_{member.name}", Shape.PROPERTY_GET, member),
            ClassifiedMember(f"set_{member.name}", Shape.PROPERTY_SET, member),
        ]

    returns = member.return_type is not None
    if not member.parameters:
        shape = Shape.RETURNING_NO_ARG if returns else Shape.VOID_NO_ARG
    elif member.has_callback:
        shape = Shape.CALLBACK_ARG
    else:
        shape = Shape.RETURNING_WITH_ARGS if returns else Shape.VOID_WITH_ARGS

    tag = method_tag(member)
    logger.debug(f"Classified {member.name} as {tag} ({shape.value})")
    return [ClassifiedMember(tag, shape, member)]


def classify_declaration(declaration: InterfaceDeclaration) -> list[ClassifiedMember]:
    """Classify every member of a declaration, preserving declaration order."""
    _validate_identifier(declaration.name, "interface")
    classified = []
    for member in declaration.members:
        classified.extend(classify_member(member))
    return classified


def _validate_member(member: Member) -> None:
    _validate_identifier(member.name, "member")
    if member.name in RESERVED_MEMBER_NAMES or member.name.startswith(
        ("_", "trigger_")
    ):
        raise DeclarationError(
            f"Member name '{member.name}' clashes with the generated mock API"
        )

    if isinstance(member, PropertyMember):
        _validate_type(member.type, f"property '{member.name}'")
        return

    seen = set()
    for param in member.parameters:
        _validate_identifier(param.name, f"parameter of '{member.name}'")
        if param.name in RESERVED_PARAMETER_NAMES:
            raise DeclarationError(
                f"Parameter name '{param.name}' of '{member.name}' is reserved"
            )
        if param.name in seen:
            raise DeclarationError(
                f"Duplicate parameter '{param.name}' in '{member.name}'"
            )
        seen.add(param.name)
        _validate_type(param.type, f"parameter '{param.name}' of '{member.name}'")

    if member.return_type is not None:
        _validate_type(member.return_type, f"return type of '{member.name}'")


def _validate_identifier(name: str, what: str) -> None:
    if not name.isidentifier() or keyword.iskeyword(name):
        raise DeclarationError(f"Invalid {what} name: {name!r}")


def _validate_type(type_text: str, what: str) -> None:
    try:
        ast.parse(type_text, mode="eval")
    except SyntaxError as e:
        raise DeclarationError(f"Cannot parse type of {what}: {type_text!r}") from e
