"""
dropsync - Dropped-record transfer and resumable source cleanup.

Moves dropped rows from a source sheet into one of two destination
sheets, then drains a persisted deletion queue across time-boxed
cleanup passes.
"""

__version__ = "1.0.0"
__author__ = "dropsync"
