"""Exceptions raised by recordkit models."""


class ModelError(Exception):
    """Base class for every error raised by a model."""


class ConfigurationError(ModelError):
    """A required model option is missing."""


class FormatError(ModelError):
    """A join entry has a shape the model does not understand."""


class MissingIdentifierError(ModelError):
    """An update or remove was requested without an identifier value."""
