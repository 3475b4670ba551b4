"""Generate test doubles for Python interfaces."""

from mock_synthesizer.classifier import classify_declaration, classify_member, method_tag
from mock_synthesizer.declaration_parser import (
    declaration_from_class,
    parse_interface_file,
    parse_interface_source,
)
from mock_synthesizer.errors import (
    DeclarationError,
    MockFailure,
    TagCollisionError,
    UnstubbedCallError,
    VerificationError,
)
from mock_synthesizer.generator import GeneratorOptions, generate_mock_source
from mock_synthesizer.matchers import ANY, exact
from mock_synthesizer.models import (
    FunctionMember,
    InterfaceDeclaration,
    Parameter,
    PropertyMember,
    Shape,
)
from mock_synthesizer.planner import build_plan
from mock_synthesizer.runtime import abort_on_failure, raise_failure
from mock_synthesizer.synthesize import build_mock_class, compile_mock

__all__ = [
    # Models
    "InterfaceDeclaration",
    "FunctionMember",
    "PropertyMember",
    "Parameter",
    "Shape",
    # Declarations
    "parse_interface_file",
    "parse_interface_source",
    "declaration_from_class",
    # Classification and planning
    "method_tag",
    "classify_member",
    "classify_declaration",
    "build_plan",
    # Generation
    "GeneratorOptions",
    "generate_mock_source",
    "compile_mock",
    "build_mock_class",
    # Matching and failures
    "ANY",
    "exact",
    "raise_failure",
    "abort_on_failure",
    "DeclarationError",
    "TagCollisionError",
    "MockFailure",
    "UnstubbedCallError",
    "VerificationError",
]
