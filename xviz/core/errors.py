"""
Exception hierarchy for XVIZ decoding, parsing and transport.

Conditions caused by caller or configuration mistakes are raised. Gaps that
occur in normal data streams (missing updates, missing timestamps) are not
exceptions; they are reported as ``Incomplete`` messages by the parser.
"""


class XVIZError(Exception):
    """Base class for all XVIZ errors."""


class UnsupportedVersionError(XVIZError):
    """Detected major version is not in the supported set."""

    def __init__(self, version: int, supported):
        self.version = version
        self.supported = sorted(supported)
        super().__init__(
            f"XVIZ version {version} is not supported. "
            f"Currently supported versions are {self.supported}."
        )


class UndetectableVersionError(XVIZError):
    """A version string is present but its major component cannot be parsed."""

    def __init__(self, version):
        self.version = version
        super().__init__(f"Unable to detect the XVIZ version from {version!r}")


class MalformedContainerError(XVIZError, ValueError):
    """Binary container header, table or pointer is inconsistent."""


class XVIZDataError(XVIZError, ValueError):
    """Raw data could not be materialized into a message object."""


class TransportError(XVIZError):
    """Writing to the transport sink failed."""
