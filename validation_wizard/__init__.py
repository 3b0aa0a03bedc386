"""Data-upload validation wizard.

Rule model, per-value validators, formula evaluation, error detection and
correction bookkeeping for tabular (CSV / Excel) uploads.
"""

__version__ = "0.3.0"
