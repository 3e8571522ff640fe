"""Base class for business-rule violations raised by domain code."""

from __future__ import annotations


class DomainError(Exception):
    """Expected business failure with a stable, machine-readable ``code``."""

    code = "domain_error"
