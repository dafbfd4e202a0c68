"""Custom exceptions for transloadify."""


class TransloadifyError(Exception):
    """Base exception for all transloadify errors."""
    pass


class ConfigError(TransloadifyError):
    """Required configuration is missing or invalid."""
    pass


class TemplateFileError(ConfigError):
    """Template file cannot be read or does not hold a step list."""
    pass


class ClientError(TransloadifyError):
    """Communication with the Transloadit API failed."""
    pass


class AssemblyError(ClientError):
    """The service reported an error for an assembly."""

    def __init__(self, error: str, message: str = "", assembly_url: str = ""):
        self.error = error
        self.message = message
        self.assembly_url = assembly_url
        text = f"{error}: {message}" if message else error
        super().__init__(text)


class DownloadError(ClientError):
    """A result file could not be fetched."""
    pass
