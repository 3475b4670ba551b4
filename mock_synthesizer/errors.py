"""Errors raised while generating mocks and while running them."""


class DeclarationError(ValueError):
    """The interface declaration cannot be turned into a mock."""


class TagCollisionError(DeclarationError):
    """Two members produce the same method tag."""

    def __init__(self, tag: str, first: str, second: str):
        self.tag = tag
        super().__init__(
            f"Members '{first}' and '{second}' both map to method tag '{tag}'; "
            "rename a parameter to tell them apart"
        )


class MockFailure(AssertionError):
    """A test-time contract violation detected by a generated mock."""

    def __init__(self, message: str, tag: str):
        self.tag = tag
        super().__init__(message)


class UnstubbedCallError(MockFailure):
    """A member that must return a value was called without a matching stub."""


class VerificationError(MockFailure):
    """The recorded call count did not match the expected count."""

    def __init__(
        self, message: str, tag: str, expected: int, actual: int, location: str | None
    ):
        self.expected = expected
        self.actual = actual
        self.location = location
        super().__init__(message, tag)
