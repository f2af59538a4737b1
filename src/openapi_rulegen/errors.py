"""Exceptions raised by openapi-rulegen.

Malformed identifiers and contradictory constraints surface as pydantic
``ValidationError`` from the models themselves. The classes below cover
reference resolution and loading input files.
"""


class RuleGenError(Exception):
    """Base class for all openapi-rulegen errors."""


class DocumentLoadError(RuleGenError):
    """An OpenAPI document or route list could not be read or parsed."""


class ReferenceResolutionError(RuleGenError):
    """A ``$ref`` pointer could not be resolved."""

    def __init__(self, message: str, ref: str = ""):
        super().__init__(message)
        self.ref = ref


class InvalidReferenceError(ReferenceResolutionError):
    """The reference is not an internal ``#/...`` pointer."""


class ReferenceNotFoundError(ReferenceResolutionError):
    """A pointer segment does not exist in the document."""


class CircularReferenceError(ReferenceResolutionError):
    """The reference is already being resolved further up the stack."""

    def __init__(self, chain: list[str]):
        super().__init__("Circular reference detected: " + " -> ".join(chain), ref=chain[-1] if chain else "")
        self.chain = chain
