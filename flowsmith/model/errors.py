# flowsmith/model/errors.py


class FlowsmithError(Exception):
    """Base class for errors raised by flowsmith."""


class NotFoundError(FlowsmithError, LookupError):
    """A requested node, workflow or version does not exist."""


class MalformedOperationError(FlowsmithError, ValueError):
    """A patch operation is missing required fields or has an unknown type."""


class EnvelopeError(FlowsmithError, ValueError):
    """A workflow document does not match the workflow envelope schema."""

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages) or "invalid workflow document")
