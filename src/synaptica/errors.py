"""Exception types shared across synaptica."""

from typing import Optional


class SynapticaError(Exception):
    """Base class for synaptica errors."""


class StoreError(SynapticaError):
    """Raised when the project store cannot complete an operation."""


class ProjectNotFoundError(StoreError):
    """Raised when a project does not exist or belongs to another user."""

    def __init__(self, project_id: str):
        super().__init__(f"Project '{project_id}' not found or access denied")
        self.project_id = project_id


class DuplicatePaperError(StoreError):
    """Raised when a paper is already saved to the target project."""

    def __init__(self, pmid: str, project_id: str):
        super().__init__(
            f"Paper {pmid} is already saved to project '{project_id}'"
        )
        self.pmid = pmid
        self.project_id = project_id


class RowRejected(SynapticaError):
    """Raised when a CSV row cannot be normalized into a paper record."""

    def __init__(self, reason: str, pmid: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.pmid = pmid


class RetryError(SynapticaError):
    """Raised when every attempt of a retry policy failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class PubMedError(SynapticaError):
    """Raised when the PubMed E-utilities service cannot be queried."""


class AnalysisError(SynapticaError):
    """Raised when the LLM analysis produced no usable output."""
