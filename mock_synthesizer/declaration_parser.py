"""Build interface declarations from Python source or from live classes."""

import ast
import collections.abc
import inspect
import logging
import types
import typing
from pathlib import Path

from mock_synthesizer.errors import DeclarationError
from mock_synthesizer.models import (
    FunctionMember,
    InterfaceDeclaration,
    Member,
    Parameter,
    PropertyMember,
)

logger = logging.getLogger(__name__)

SKIPPED_DECORATORS = {"staticmethod", "classmethod"}
IGNORED_BASES = {"object", "Protocol", "ABC", "Generic"}
UNTYPED = "Any"


def _decorator_name(node: ast.expr) -> str:
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return ""


def is_callable_annotation(node: ast.expr | None) -> bool:
    """Whether an annotation node denotes a function type.

    Recognizes ``Callable`` and ``Callable[...]`` (bare, ``typing.`` or
    ``collections.abc.``), also when wrapped in ``Optional[...]`` or unioned
    with ``None``, and string annotations containing those forms.
    """
    if node is None:
        return False
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            return is_callable_annotation(ast.parse(node.value, mode="eval").body)
        except SyntaxError:
            return False
    if isinstance(node, ast.Name):
        return node.id == "Callable"
    if isinstance(node, ast.Attribute):
        return node.attr == "Callable"
    if isinstance(node, ast.Subscript):
        if _decorator_name(node.value) == "Optional":
            return is_callable_annotation(node.slice)
        return is_callable_annotation(node.value)
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return is_callable_annotation(node.left) or is_callable_annotation(node.right)
    return False


def _is_none(node: ast.expr | None) -> bool:
    return isinstance(node, ast.Constant) and node.value in (None, "None")


def _parameters_from_ast(func: ast.FunctionDef) -> tuple[Parameter, ...]:
    args = func.args
    if args.vararg or args.kwarg:
        raise DeclarationError(
            f"'{func.name}' takes variadic arguments, which cannot be mocked"
        )
    positional = args.posonlyargs + args.args
    # defaults line up with the tail of the positional parameters
    defaults = [None] * (len(positional) - len(args.defaults)) + args.defaults
    declared = [(arg, default, False) for arg, default in zip(positional, defaults)]
    declared += [(arg, default, True) for arg, default in zip(args.kwonlyargs, args.kw_defaults)]
    if declared and declared[0][0].arg in ("self", "cls"):
        declared = declared[1:]

    parameters = []
    for arg, default, keyword_only in declared:
        type_text = ast.unparse(arg.annotation) if arg.annotation else UNTYPED
        parameters.append(
            Parameter(
                name=arg.arg,
                type=type_text,
                is_callable=is_callable_annotation(arg.annotation),
                default=ast.unparse(default) if default is not None else None,
                keyword_only=keyword_only,
            )
        )
    return tuple(parameters)


def _member_from_function(func: ast.FunctionDef) -> Member:
    decorators = {_decorator_name(d) for d in func.decorator_list}
    if "property" in decorators:
        if func.returns is None:
            raise DeclarationError(f"Property '{func.name}' has no type annotation")
        return PropertyMember(name=func.name, type=ast.unparse(func.returns))

    returns = None
    if func.returns is not None and not _is_none(func.returns):
        returns = ast.unparse(func.returns)
    return FunctionMember(
        name=func.name,
        parameters=_parameters_from_ast(func),
        return_type=returns,
    )


def _classes_by_name(tree: ast.Module) -> dict[str, ast.ClassDef]:
    classes: dict[str, ast.ClassDef] = {}
    for node in ast.walk(tree):
        if isinstance(node, ast.ClassDef):
            classes.setdefault(node.name, node)
    return classes


def _base_name(node: ast.expr) -> str:
    if isinstance(node, ast.Subscript):
        node = node.value
    return _decorator_name(node)


def _interface_chain(
    classes: dict[str, ast.ClassDef],
    class_def: ast.ClassDef,
    visiting: frozenset[str] = frozenset(),
) -> list[ast.ClassDef]:
    """The class and the interfaces it extends, bases first."""
    visiting = visiting | {class_def.name}
    chain: list[ast.ClassDef] = []
    for base in class_def.bases:
        name = _base_name(base)
        if name in IGNORED_BASES:
            continue
        base_def = classes.get(name)
        if base_def is None or name in visiting:
            raise DeclarationError(
                f"Base '{ast.unparse(base)}' of '{class_def.name}' is not "
                "declared in the same source"
            )
        for klass in _interface_chain(classes, base_def, visiting):
            if klass not in chain:
                chain.append(klass)
    chain.append(class_def)
    return chain


def _members_from_class_def(class_def: ast.ClassDef) -> dict[str, list[Member]]:
    # name -> members declared under it; @overload stubs replace the
    # implementation that follows them
    by_name: dict[str, list[Member]] = {}
    overloaded: set[str] = set()

    for node in class_def.body:
        if isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            name = node.target.id
            if name.startswith("_") or _decorator_name(node.annotation) == "ClassVar":
                continue
            if isinstance(node.annotation, ast.Subscript) and (
                _decorator_name(node.annotation.value) == "ClassVar"
            ):
                continue
            by_name[name] = [PropertyMember(name=name, type=ast.unparse(node.annotation))]

        elif isinstance(node, ast.AsyncFunctionDef):
            raise DeclarationError(f"Async method '{node.name}' cannot be mocked")

        elif isinstance(node, ast.FunctionDef):
            if node.name.startswith("__") and node.name.endswith("__"):
                continue
            decorators = {_decorator_name(d) for d in node.decorator_list}
            if decorators & SKIPPED_DECORATORS or "setter" in decorators:
                logger.debug(f"Skipping {node.name} (decorators: {sorted(decorators)})")
                continue
            member = _member_from_function(node)
            if "overload" in decorators:
                if node.name not in overloaded:
                    by_name[node.name] = []
                    overloaded.add(node.name)
                by_name[node.name].append(member)
            elif node.name not in overloaded:
                by_name[node.name] = [member]

    return by_name


def parse_interface_source(content: str, interface: str) -> InterfaceDeclaration:
    """Parse Python source and extract the declaration of one interface class.

    Args:
        content: Python source text
        interface: Name of the class to extract

    Members of base interfaces declared in the same source come first; a
    redefinition in a subclass replaces the inherited member.

    Returns:
        InterfaceDeclaration with members in source order

    Raises:
        DeclarationError: If the source does not parse, the class is missing
            or one of its bases is not declared in the source
    """
    try:
        tree = ast.parse(content)
    except SyntaxError as e:
        raise DeclarationError(f"Cannot parse interface source: {e}") from e

    classes = _classes_by_name(tree)
    if interface not in classes:
        raise DeclarationError(f"Interface '{interface}' not found")

    by_name: dict[str, list[Member]] = {}
    for class_def in _interface_chain(classes, classes[interface]):
        by_name.update(_members_from_class_def(class_def))
    members = [member for group in by_name.values() for member in group]
    logger.info(f"Parsed {len(members)} members from {interface}")
    return InterfaceDeclaration(name=interface, members=tuple(members))


def parse_interface_file(path: Path, interface: str) -> InterfaceDeclaration:
    """Parse a Python file and extract the declaration of one interface class.

    Args:
        path: Path to the .py or .pyi file
        interface: Name of the class to extract

    Returns:
        InterfaceDeclaration with members in source order
    """
    logger.info(f"Parsing interface {interface} from {path}")
    content = Path(path).read_text()
    return parse_interface_source(content, interface)


def is_callable_type(annotation: typing.Any) -> bool:
    """Whether a resolved type hint denotes a function type."""
    if annotation is collections.abc.Callable or annotation is typing.Callable:
        return True
    origin = typing.get_origin(annotation)
    if origin is collections.abc.Callable:
        return True
    if origin is typing.Union or origin is types.UnionType:
        return any(is_callable_type(arg) for arg in typing.get_args(annotation))
    return False


def _type_text(annotation: typing.Any) -> str:
    if annotation is inspect.Parameter.empty:
        return UNTYPED
    if isinstance(annotation, str):
        return annotation
    return inspect.formatannotation(annotation)


def _resolved_hints(obj: typing.Any) -> dict[str, typing.Any]:
    try:
        return typing.get_type_hints(obj)
    except NameError:
        # Unresolvable forward references: judge from the written form
        return {}


def _function_from_callable(name: str, func: typing.Any) -> FunctionMember:
    signature = inspect.signature(func)
    hints = _resolved_hints(func)
    parameters = []
    items = list(signature.parameters.values())
    if items and items[0].name in ("self", "cls"):
        items = items[1:]
    for param in items:
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            raise DeclarationError(
                f"'{name}' takes variadic arguments, which cannot be mocked"
            )
        if param.name in hints:
            is_callable = is_callable_type(hints[param.name])
        elif isinstance(param.annotation, str):
            is_callable = is_callable_annotation(ast.Constant(param.annotation))
        else:
            is_callable = False
        parameters.append(
            Parameter(
                name=param.name,
                type=_type_text(param.annotation),
                is_callable=is_callable,
                default=None if param.default is param.empty else repr(param.default),
                keyword_only=param.kind is param.KEYWORD_ONLY,
            )
        )

    returns = signature.return_annotation
    if returns is inspect.Signature.empty or returns is None or returns == "None":
        return_type = None
    else:
        return_type = _type_text(returns)
    return FunctionMember(name=name, parameters=tuple(parameters), return_type=return_type)


def _interface_bases(cls: type) -> list[type]:
    skipped = {object, typing.Protocol, typing.Generic}
    return [klass for klass in reversed(cls.__mro__) if klass not in skipped]


def declaration_from_class(cls: type) -> InterfaceDeclaration:
    """Introspect a live class (typically a ``typing.Protocol``) into a declaration.

    Members of base interfaces come first. Overloads registered with
    ``typing.overload`` become one function member each.
    """
    members: dict[str, list[Member]] = {}

    for klass in _interface_bases(cls):
        for name, annotation in inspect.get_annotations(klass).items():
            if name.startswith("_") or typing.get_origin(annotation) is typing.ClassVar:
                continue
            members[name] = [PropertyMember(name=name, type=_type_text(annotation))]

        for name, value in vars(klass).items():
            if name.startswith("_"):
                continue
            if isinstance(value, property):
                annotation = inspect.signature(value.fget).return_annotation
                if annotation is inspect.Signature.empty:
                    raise DeclarationError(f"Property '{name}' has no type annotation")
                members[name] = [PropertyMember(name=name, type=_type_text(annotation))]
            elif isinstance(value, (staticmethod, classmethod)):
                continue
            elif inspect.iscoroutinefunction(value):
                raise DeclarationError(f"Async method '{name}' cannot be mocked")
            elif inspect.isfunction(value):
                if value.__module__ == "typing":
                    raise DeclarationError(
                        f"Overloads of '{name}' need an implementation to be "
                        "introspected; parse the source instead"
                    )
                overloads = typing.get_overloads(value)
                targets = overloads or [value]
                members[name] = [_function_from_callable(name, f) for f in targets]

    flat = [member for group in members.values() for member in group]
    logger.info(f"Introspected {len(flat)} members from {cls.__name__}")
    return InterfaceDeclaration(name=cls.__name__, members=tuple(flat))
