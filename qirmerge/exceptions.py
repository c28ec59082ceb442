"""Custom exceptions for the :mod:`qirmerge` package."""

from __future__ import annotations


class QirMergeError(Exception):
    """Base exception for all errors raised by :mod:`qirmerge`."""


class SourceError(QirMergeError):
    """Raised when a source document cannot be turned into a loaded PDF."""


class FetchError(SourceError):
    """Raised when a remote document cannot be fetched."""


class DecodeError(SourceError):
    """Raised when an inline payload is not valid base64."""


class ParseError(SourceError):
    """Raised when bytes do not form a readable PDF document."""


class PlanError(QirMergeError, ValueError):
    """Raised when page plan inputs are inconsistent."""


class RenderError(QirMergeError):
    """Raised when the index page cannot be rendered."""


class CopyError(QirMergeError):
    """Raised when pages cannot be copied into the merged document."""


__all__ = [
    "QirMergeError",
    "SourceError",
    "FetchError",
    "DecodeError",
    "ParseError",
    "PlanError",
    "RenderError",
    "CopyError",
]
