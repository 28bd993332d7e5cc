# __init__.py
"""Top-level package for lifo-cost-basis."""
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

from .cost_basis import (
    AssetMismatchError,
    CostBasisError,
    InsufficientLotsError,
    InvalidAcquisitionAmountError,
    InvalidDisposalAmountError,
    LifoCostBasisCalculator,
    Lot,
    MatchedLot,
    Transaction,
    main,
    record_disposal,
    replay_transactions,
)

try:
    # Use the distribution name from pyproject.toml
    __version__ = _version("lifo-cost-basis")
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed (e.g., running from a source checkout without `pip install -e .`)
    __version__ = "0.0.0"

__all__ = [
    "AssetMismatchError",
    "CostBasisError",
    "InsufficientLotsError",
    "InvalidAcquisitionAmountError",
    "InvalidDisposalAmountError",
    "LifoCostBasisCalculator",
    "Lot",
    "MatchedLot",
    "Transaction",
    "main",
    "record_disposal",
    "replay_transactions",
]
