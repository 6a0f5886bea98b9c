class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class DocumentNotFoundError(ProcessorError):
    """Raised when a document cannot be found in the database."""


class PipelineStateError(ProcessorError):
    """Raised when a step runs before the data it depends on was produced."""
