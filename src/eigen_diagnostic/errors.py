"""Error taxonomy for the diagnostic pipeline.

Every error is local to one request. Nothing here carries session state.
"""


class DiagnosticError(Exception):
    """Base class for all diagnostic pipeline errors."""


class ContractViolation(DiagnosticError):
    """LLM reply did not parse as the required JSON schema, or a field is out of range.

    Fatal for the current turn. The caller must not commit any partial state.
    """


class PreconditionError(DiagnosticError):
    """Operation invoked without its required inputs. Raised before any external call."""


class ExternalCallFailure(DiagnosticError):
    """Network, timeout or 5xx from the LLM provider. Never retried automatically."""


class NotFoundError(DiagnosticError):
    """Referenced session, organization or user is absent from the store."""


class EvidenceConversionError(DiagnosticError):
    """Raised when an uploaded evidence file cannot be converted to Markdown.

    The original upload stays on disk; only indexing is skipped.
    """
