"""Error taxonomy for the docrag pipeline.

Which errors are fatal is decided by the pipeline stage policy, not by the
exception type alone:

  EmptyInputError             rejected before any external call
  EmbeddingUnavailableError   retrieval degrades to empty semantic context
  VectorStoreUnavailableError retrieval degrades to empty semantic context
  GenerationFailedError       fatal, aborts the pipeline run
  DocumentRenderError         non-fatal, response returned without a file
  PersistenceError            non-fatal, logged only
"""

from __future__ import annotations


class DocragError(Exception):
    """Base class for all docrag errors."""


class EmptyInputError(DocragError, ValueError):
    """Raised when chunking or embedding receives empty/whitespace text."""


class EmbeddingUnavailableError(DocragError):
    """Raised when the embedding backend fails to initialise or respond."""


class VectorStoreUnavailableError(DocragError):
    """Raised when the vector backend is unreachable or misconfigured."""


class GenerationFailedError(DocragError):
    """Raised when the language model call fails or returns no content."""


class DocumentRenderError(DocragError):
    """Raised when generated text cannot be rendered into a file."""


class PersistenceError(DocragError):
    """Raised when conversation turns cannot be saved."""
