"""
Exception hierarchy for dropsync.

Business-rule rejections are not errors (they are collected as data in
the sync report) and neither are keys that vanish before cleanup.
"""

from __future__ import annotations


class DropSyncError(Exception):
    """Base class for all dropsync errors."""


class ConfigurationError(DropSyncError):
    """
    Missing or invalid configuration: config file, sheet tab or header.

    Fatal to the current invocation. Reported, never mutates state.
    """


class StoreError(DropSyncError):
    """A tabular or key-value store operation failed."""
