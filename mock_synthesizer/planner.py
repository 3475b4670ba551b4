"""Build the tag-keyed plan a mock class is emitted from."""

import logging
from collections import Counter, defaultdict

from mock_synthesizer.classifier import classify_declaration
from mock_synthesizer.errors import DeclarationError, TagCollisionError
from mock_synthesizer.models import (
    ClassifiedMember,
    FunctionMember,
    InterfaceDeclaration,
    MockPlan,
    Shape,
)

logger = logging.getLogger(__name__)


def _describe(entry: ClassifiedMember) -> str:
    if isinstance(entry.member, FunctionMember):
        params = ", ".join(
            f"{p.name}: {p.type}" for p in entry.member.parameters
        )
        return f"{entry.name}({params})"
    return f"property {entry.name}"


def build_plan(declaration: InterfaceDeclaration, mock_prefix: str = "Mock") -> MockPlan:
    """Classify a declaration and collect it into a plan keyed by method tag.

    The plan is built completely before anything is emitted, so a collision
    anywhere in the declaration aborts generation.

    Args:
        declaration: The interface to mock
        mock_prefix: Prefix for the generated class name

    Returns:
        MockPlan with entries in declaration order

    Raises:
        DeclarationError: If a member is malformed or names clash
        TagCollisionError: If two members share a method tag
    """
    plan = MockPlan(
        interface_name=declaration.name,
        mock_name=f"{mock_prefix}{declaration.name}",
    )

    for entry in classify_declaration(declaration):
        existing = plan.entries.get(entry.tag)
        if existing is not None:
            raise TagCollisionError(entry.tag, _describe(existing), _describe(entry))
        plan.entries[entry.tag] = entry

    by_name: dict[str, list[ClassifiedMember]] = defaultdict(list)
    for entry in plan.entries.values():
        if entry.shape is not Shape.PROPERTY_SET:
            by_name[entry.name].append(entry)

    for name, entries in by_name.items():
        if len(entries) == 1:
            continue
        if any(not isinstance(e.member, FunctionMember) for e in entries):
            raise DeclarationError(
                f"'{name}' is declared both as a property and as a method"
            )
        plan.overloads[name] = [e.tag for e in entries]
        logger.debug(f"Overloads of {name}: {plan.overloads[name]}")

    plan.triggers = trigger_helpers(plan)

    logger.info(
        f"Planned {plan.mock_name} with {len(plan.entries)} method tags "
        f"({len(plan.overloads)} overloaded names)"
    )
    return plan


def trigger_helpers(plan: MockPlan) -> dict[str, tuple[str, str]]:
    """Name the trigger helper for each callback parameter.

    A member with one callback parameter gets ``trigger_<name>_completions``
    unless another callback-taking overload shares its name; then the helper
    is named after the tag. Members taking several callbacks get one helper
    per parameter, named after the tag and the parameter.

    Returns:
        Mapping of helper name to (tag, parameter name), in plan order
    """
    callback_entries = [
        e for e in plan.entries.values() if e.shape is Shape.CALLBACK_ARG
    ]
    per_name = Counter(e.name for e in callback_entries)

    helpers: dict[str, tuple[str, str]] = {}
    for entry in callback_entries:
        callbacks = entry.callback_parameters
        for param in callbacks:
            if len(callbacks) > 1:
                helper = f"trigger_{entry.tag}_{param}_completions"
            elif per_name[entry.name] > 1:
                helper = f"trigger_{entry.tag}_completions"
            else:
                helper = f"trigger_{entry.name}_completions"
            if helper in helpers:
                raise DeclarationError(f"Trigger helper '{helper}' would be defined twice")
            helpers[helper] = (entry.tag, param)
    return helpers
