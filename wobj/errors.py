"""Errors surfaced by a conversion. Anything else is a bug and propagates."""


class ConversionError(Exception):
    pass


class UsageError(ConversionError):
    """Wrong command line."""


class SceneImportError(ConversionError):
    """The input scene could not be read by the importer."""


class OutputWriteError(ConversionError):
    """The output blob could not be written."""
