"""Generate Python source for mock classes from interface declarations."""

import ast
import logging
from dataclasses import dataclass

from mock_synthesizer.errors import DeclarationError
from mock_synthesizer.models import (
    ClassifiedMember,
    InterfaceDeclaration,
    MockPlan,
    Parameter,
    Shape,
)
from mock_synthesizer.planner import build_plan
from mock_synthesizer.runtime import GENERATED_MARKER

logger = logging.getLogger(__name__)

INDENT = "    "


@dataclass
class GeneratorOptions:
    """Settings for one generation run."""

    mock_prefix: str = "Mock"
    runtime_module: str = "mock_synthesizer.runtime"
    interface_import: str | None = None  # module to import the interface from
    header: bool = True


def _annotation(type_text: str) -> str:
    """Normalize a type expression to a single line."""
    return ast.unparse(ast.parse(type_text, mode="eval"))


def _default(entry: ClassifiedMember, param: Parameter, interface: str | None) -> str:
    """Literal defaults are copied; others are read from the interface at import."""
    try:
        ast.literal_eval(param.default)
    except (ValueError, SyntaxError):
        if interface is None:
            raise DeclarationError(
                f"Default of '{param.name}' in '{entry.name}' is not a literal"
            ) from None
        return f"interface_default({interface}, {entry.name!r}, {param.name!r})"
    return _annotation(param.default)


def _signature(entry: ClassifiedMember, name: str, interface: str | None = None) -> str:
    params = ["self"]
    for p in entry.parameters:
        if p.keyword_only and "*" not in params:
            params.append("*")
        text = f"{p.name}: {_annotation(p.type)}"
        if p.default is not None:
            text += f" = {_default(entry, p, interface)}"
        params.append(text)
    returns = entry.return_type
    result = _annotation(returns) if returns is not None else "None"
    return f"def {name}({', '.join(params)}) -> {result}:"


def _arguments_tuple(entry: ClassifiedMember) -> str:
    names = [p.name for p in entry.parameters]
    if len(names) == 1:
        return f"({names[0]},)"
    return f"({', '.join(names)})"


def _names_tuple(names) -> str:
    names = list(names)
    if not names:
        return "()"
    if len(names) == 1:
        return f"({names[0]!r},)"
    return f"({', '.join(repr(n) for n in names)})"


def _accessor_body(entry: ClassifiedMember) -> str:
    """The single statement an accessor runs, chosen by shape."""
    tag = repr(entry.tag)
    if entry.shape is Shape.VOID_NO_ARG:
        return f"self._state.record_call({tag})"
    if entry.shape is Shape.RETURNING_NO_ARG:
        return f"return self._state.stubbed_return({tag})"
    if entry.shape is Shape.VOID_WITH_ARGS:
        return f"self._state.record_arguments({tag}, {_arguments_tuple(entry)})"
    if entry.shape is Shape.RETURNING_WITH_ARGS:
        return f"return self._state.stubbed_return_for({tag}, {_arguments_tuple(entry)})"
    if entry.shape is Shape.CALLBACK_ARG:
        call = f"self._state.register_callbacks({tag}, {_arguments_tuple(entry)})"
        return f"return {call}" if entry.return_type is not None else call
    if entry.shape is Shape.PROPERTY_GET:
        return f"return self._state.get_property({tag})"
    return f"self._state.set_property({tag}, value)"


def generate_accessor(
    entry: ClassifiedMember, overloaded: bool = False, interface: str | None = None
) -> list[str]:
    """Generate the method (or property accessor) for one classified member.

    Args:
        entry: The classified member
        overloaded: Emit a private per-tag implementation for a dispatcher
        interface: Interface class name, needed for non-literal defaults

    Returns:
        Lines of the method, indented for a class body
    """
    if entry.shape is Shape.PROPERTY_GET:
        header = [f"{INDENT}@property", f"{INDENT}{_signature(entry, entry.name)}"]
    elif entry.shape is Shape.PROPERTY_SET:
        header = [
            f"{INDENT}@{entry.name}.setter",
            f"{INDENT}{_signature(entry, entry.name)}",
        ]
    else:
        name = f"_call_{entry.tag}" if overloaded else entry.name
        header = [f"{INDENT}{_signature(entry, name, interface)}"]
    return header + [f"{INDENT * 2}{_accessor_body(entry)}"]


def generate_dispatcher(name: str, entries: list[ClassifiedMember]) -> list[str]:
    """Generate the public method that routes a call to one of its overloads."""
    candidates = ", ".join(f"({e.tag!r}, self._call_{e.tag})" for e in entries)
    return [
        f"{INDENT}def {name}(self, *args, **kwargs):",
        f"{INDENT * 2}tag = resolve_overload(",
        f"{INDENT * 3}{name!r}, ({candidates},), args, kwargs",
        f"{INDENT * 2})",
        f'{INDENT * 2}return getattr(self, f"_call_{{tag}}")(*args, **kwargs)',
    ]


def _branches(plan: MockPlan, render) -> list[str]:
    """Emit an if/elif chain over tags, one branch per plan entry."""
    lines = []
    keyword = "if"
    for entry in plan.entries.values():
        body = render(entry)
        if not body:
            continue
        lines.append(f"{INDENT * 2}{keyword} tag == {entry.tag!r}:")
        lines.extend(f"{INDENT * 3}{line}" for line in body)
        keyword = "elif"
    return lines


def _given_case(entry: ClassifiedMember) -> list[str]:
    names = _names_tuple(p.name for p in entry.parameters)
    shape = entry.shape
    if shape in (Shape.PROPERTY_GET, Shape.PROPERTY_SET):
        return [
            "matchers_for(tag, arguments, ())",
            "self._state.install_property(tag, require_return(tag, will_return))",
        ]
    if shape is Shape.RETURNING_NO_ARG:
        return [
            "matchers_for(tag, arguments, ())",
            "self._state.install_return(tag, require_return(tag, will_return))",
        ]
    if shape is Shape.RETURNING_WITH_ARGS or (
        shape is Shape.CALLBACK_ARG and entry.return_type is not None
    ):
        return [
            "self._state.install_return_for(",
            f"{INDENT}tag,",
            f"{INDENT}matchers_for(tag, arguments, {names}),",
            f"{INDENT}require_return(tag, will_return),",
            ")",
        ]
    # Void shapes accept a stub but have nothing to store
    return [f"matchers_for(tag, arguments, {names})"]


def _verify_case(entry: ClassifiedMember) -> list[str]:
    names = _names_tuple(p.name for p in entry.parameters)
    shape = entry.shape
    if shape in (Shape.VOID_NO_ARG, Shape.RETURNING_NO_ARG):
        return [
            "matchers = matchers_for(tag, arguments, ())",
            "actual = self._state.call_count(tag)",
        ]
    if shape is Shape.PROPERTY_GET:
        return [
            "matchers = matchers_for(tag, arguments, ())",
            "actual = self._state.get_count(tag)",
        ]
    if shape is Shape.PROPERTY_SET:
        return [
            f"matchers = matchers_for(tag, arguments, {names})",
            "actual = self._state.matching_sets(tag, matchers)",
        ]
    return [
        f"matchers = matchers_for(tag, arguments, {names})",
        "actual = self._state.matching_calls(tag, matchers)",
    ]


def _trigger_case(entry: ClassifiedMember) -> list[str]:
    if entry.shape is not Shape.CALLBACK_ARG:
        return []
    names = _names_tuple(entry.callback_parameters)
    return [
        f"name = callback_parameter(tag, parameter, {names})",
        "return self._state.drain_callbacks(tag, name, args)",
    ]


def generate_given(plan: MockPlan) -> list[str]:
    """Generate ``given``, which installs stubs per method tag."""
    lines = [
        f"{INDENT}def given(self, method, /, *, will_return=MISSING, **arguments):",
        f'{INDENT * 2}"""Install a return value for a call pattern."""',
        f"{INDENT * 2}tag = self.Method(method).value",
    ]
    lines.extend(_branches(plan, _given_case))
    return lines


def generate_verify(plan: MockPlan) -> list[str]:
    """Generate ``verify``, which compares recorded calls to an expected count."""
    lines = [
        f"{INDENT}def verify(self, method, count, /, **arguments):",
        f'{INDENT * 2}"""Fail unless the call pattern was seen exactly ``count`` times."""',
        f"{INDENT * 2}tag = self.Method(method).value",
    ]
    branches = _branches(plan, _verify_case)
    if branches:
        lines.extend(branches)
        lines.append(f"{INDENT * 2}self._state.check_count(tag, count, actual, matchers)")
    return lines


def generate_trigger(plan: MockPlan) -> list[str]:
    """Generate ``trigger`` and the per-callback ``trigger_*_completions`` helpers."""
    lines = [
        f"{INDENT}def trigger(self, method, /, *args, parameter=None):",
        f'{INDENT * 2}"""Invoke and clear the pending callbacks of a method."""',
        f"{INDENT * 2}tag = self.Method(method).value",
    ]
    lines.extend(_branches(plan, _trigger_case))
    lines.append(f'{INDENT * 2}raise TypeError(f"{{tag}} takes no callbacks")')

    for helper, (tag, param) in plan.triggers.items():
        lines.extend(
            [
                "",
                f"{INDENT}def {helper}(self, *args):",
                f"{INDENT * 2}return self._state.drain_callbacks({tag!r}, {param!r}, args)",
            ]
        )
    return lines


def generate_method_enum(plan: MockPlan) -> list[str]:
    """Generate the ``Method`` enum listing every tag in declaration order."""
    lines = [f"{INDENT}class Method(enum.Enum):"]
    if not plan.entries:
        lines.append(f"{INDENT * 2}pass")
    for tag in plan.entries:
        lines.append(f"{INDENT * 2}{tag} = {tag!r}")
    return lines


def generate_layout(plan: MockPlan) -> list[str]:
    """Generate the ``SlotSpec`` table MockState builds its slots from."""
    lines = [f"{INDENT}_LAYOUT = ("]
    for entry in plan.entries.values():
        args = [repr(entry.tag), f"Shape.{entry.shape.name}"]
        if entry.parameters:
            args.append(f"parameters={_names_tuple(p.name for p in entry.parameters)}")
        if entry.callback_parameters:
            args.append(f"callbacks={_names_tuple(entry.callback_parameters)}")
        if entry.return_type is not None and entry.shape is Shape.CALLBACK_ARG:
            args.append("returns=True")
        if entry.shape in (Shape.PROPERTY_GET, Shape.PROPERTY_SET):
            args.append(f"property={entry.name!r}")
        lines.append(f"{INDENT * 2}SlotSpec({', '.join(args)}),")
    lines.append(f"{INDENT})")
    return lines


def generate_mock_class(plan: MockPlan) -> str:
    """Generate the ``class Mock<Name>(<Name>)`` block for a plan."""
    lines = [
        f"class {plan.mock_name}({plan.interface_name}):",
        f'{INDENT}"""Mock implementation of {plan.interface_name}."""',
        "",
    ]
    lines.extend(generate_method_enum(plan))
    lines.append("")
    lines.extend(generate_layout(plan))
    lines.extend(
        [
            "",
            f"{INDENT}def __init__(self, failure_handler=None):",
            f"{INDENT * 2}self._state = MockState(self._LAYOUT, failure_handler)",
        ]
    )

    dispatched = set()
    for entry in plan.entries.values():
        lines.append("")
        overloaded = entry.name in plan.overloads
        lines.extend(
            generate_accessor(entry, overloaded=overloaded, interface=plan.interface_name)
        )
        if overloaded and entry.name not in dispatched:
            dispatched.add(entry.name)
            group = [plan.entries[tag] for tag in plan.overloads[entry.name]]
            lines.append("")
            lines.extend(generate_dispatcher(entry.name, group))

    for section in (generate_given, generate_verify, generate_trigger):
        lines.append("")
        lines.extend(section(plan))

    return "\n".join(lines) + "\n"


def generate_module(plan: MockPlan, options: GeneratorOptions | None = None) -> str:
    """Generate a complete Python module defining the mock class.

    Args:
        plan: The plan to emit
        options: Generator settings

    Returns:
        Python source text
    """
    options = options or GeneratorOptions()
    lines = []
    if options.header:
        lines.extend(
            [
                f'"""Mock for {plan.interface_name}, generated by mock-synthesizer.',
                "",
                "Do not edit by hand; regenerate from the interface instead.",
                '"""',
                "",
            ]
        )
    lines.extend(
        [
            "from __future__ import annotations",
            "",
            "import enum",
            "",
            f"from {options.runtime_module} import (",
            f"{INDENT}MISSING,",
            f"{INDENT}MockState,",
            f"{INDENT}Shape,",
            f"{INDENT}SlotSpec,",
            f"{INDENT}callback_parameter,",
            f"{INDENT}interface_default,",
            f"{INDENT}matchers_for,",
            f"{INDENT}require_return,",
            f"{INDENT}resolve_overload,",
            ")",
        ]
    )
    if options.interface_import:
        lines.append(f"from {options.interface_import} import {plan.interface_name}")
    lines.extend(["", f"{GENERATED_MARKER} = True", "", "", ""])

    source = "\n".join(lines) + generate_mock_class(plan)
    logger.info(f"Generated {plan.mock_name} ({len(source.splitlines())} lines)")
    return source


def generate_mock_source(
    declaration: InterfaceDeclaration, options: GeneratorOptions | None = None
) -> str:
    """Plan and emit the mock module for an interface declaration.

    Raises:
        DeclarationError: If the declaration cannot be mocked; nothing is emitted
    """
    options = options or GeneratorOptions()
    plan = build_plan(declaration, mock_prefix=options.mock_prefix)
    return generate_module(plan, options)
