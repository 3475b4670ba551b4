"""Compile generated mock source in-process."""

import linecache
import logging
import types
from dataclasses import replace

from mock_synthesizer.declaration_parser import declaration_from_class
from mock_synthesizer.generator import GeneratorOptions, generate_mock_source
from mock_synthesizer.models import InterfaceDeclaration

logger = logging.getLogger(__name__)


def compile_mock(
    declaration: InterfaceDeclaration,
    interface: type | None = None,
    options: GeneratorOptions | None = None,
) -> type:
    """Generate a mock for ``declaration`` and return the compiled class.

    Args:
        declaration: The interface to mock
        interface: The class the mock should subclass; plain ``object`` if None.
            Defaults that are not literals are read from it, so declarations
            with such defaults need it
        options: Generator settings (``interface_import`` is ignored)

    Returns:
        The generated mock class
    """
    options = replace(options or GeneratorOptions(), interface_import=None)
    source = generate_mock_source(declaration, options)
    mock_name = f"{options.mock_prefix}{declaration.name}"
    filename = f"<mock {mock_name}>"

    module = types.ModuleType(f"mock_synthesizer.generated.{mock_name}")
    module.__dict__[declaration.name] = interface if interface is not None else object
    code = compile(source, filename, "exec")
    # Keep the source around so tracebacks through the mock show real lines
    linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
    exec(code, module.__dict__)

    mock_class = module.__dict__[mock_name]
    logger.debug(f"Compiled {mock_name}")
    return mock_class


def build_mock_class(interface: type, options: GeneratorOptions | None = None) -> type:
    """Introspect ``interface`` and return a compiled mock class for it."""
    return compile_mock(declaration_from_class(interface), interface, options)
