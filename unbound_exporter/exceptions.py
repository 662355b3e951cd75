"""Exceptions raised while translating Unbound statistics."""


class UnboundExporterError(Exception):
    """Base class for all exporter errors."""


class CatalogError(UnboundExporterError):
    """The metric catalog is inconsistent; the exporter cannot start."""


class FormatError(UnboundExporterError):
    """The statistics feed does not have the expected shape."""


class TransportError(UnboundExporterError):
    """The statistics could not be fetched from the resolver."""
