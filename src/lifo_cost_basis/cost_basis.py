"""
Calculate capital gains cost basis using the LIFO method.

Cost basis calculator that tracks the lots of an asset acquired over
time and, whenever some of that asset is disposed of (sold, gifted or
spent), reports which lots were consumed.  Lots are matched Last In,
First Out: the most recently acquired lot that is still held is used
first.  If 50 units were acquired at one cost and 50 more at another,
disposing of 75 yields two matched lots: 50 from the second purchase
and 25 from the first.

All amounts and prices are ``Decimal``, so the matched amounts always
add up exactly to the disposed amount.

The command line driver uses a CSV file as input.  This file is called
"asset_tx.csv" by default, but any name can be passed with --input.
The file has the following header: Date, Asset, Amount (asset),
Price ($).  A positive amount is an acquisition at that unit price; a
negative amount is a disposal at that unit sale price.

Classes:
    Transaction:
        One acquisition or disposal of an asset.
    Lot:
        A quantity of an asset still held, with its unit cost.
    MatchedLot:
        The part of a lot consumed by a disposal.
    LifoCostBasisCalculator:
        LIFO lot stack for a single asset.

Functions:
    to_decimal:
        Parse an amount from input.  Can be string or numeric.
    stable_repr:
        Deterministic text rendering of a transaction.
    replay_transactions:
        Route transactions to one calculator per asset.
    record_disposal:
        Write the matched lots of a disposal to the Form 8949 rows.
    main:
        Main function.

"""

import argparse
import json
import logging
import numbers
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import MAX_PREC, Decimal, Inexact, InvalidOperation, localcontext
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
UNITS = Decimal("0.00000001")


@contextmanager
def exact_arithmetic(trap_inexact: bool = True) -> Iterator[None]:
    """Decimal context where sums, differences and products never round.

    Precision is unbounded, so these operations keep every digit of
    their operands.  With ``trap_inexact`` any operation that would
    still round raises ``decimal.Inexact``.
    """
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        ctx.traps[Inexact] = trap_inexact
        yield


def as_date(value: date) -> date:
    """Drop the time of day from a ``datetime``; leave a ``date`` as is."""
    if isinstance(value, datetime):
        return value.date()
    return value


class CostBasisError(ValueError):
    """Base class for errors raised by the cost basis calculator."""


class AssetMismatchError(CostBasisError):
    """A transaction was passed to the calculator of another asset."""

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"LifoCostBasisCalculator with asset {expected} tried to "
            f"process transaction with asset {actual}"
        )


class InvalidAcquisitionAmountError(CostBasisError):
    """An acquisition had a negative amount."""


class InvalidDisposalAmountError(CostBasisError):
    """A disposal had a positive amount."""


class InsufficientLotsError(CostBasisError):
    """A disposal needed more of the asset than the lots held.

    Attributes:
        transaction (Transaction): the disposal that could not be
            covered.
        remaining (Decimal): the amount left unmatched when the lots
            ran out.
    """

    def __init__(self, transaction: "Transaction",
                 remaining: Decimal) -> None:
        self.transaction = transaction
        self.remaining = remaining
        super().__init__(
            f"Attempted to dispose {remaining} {transaction.asset}, but "
            f"none remained. TX: {stable_repr(transaction)}"
        )


@dataclass(frozen=True)
class Transaction:
    asset: str
    amount: Decimal
    price: Decimal
    tx_date: date


@dataclass
class Lot:
    tx_date: date
    amount: Decimal
    unit_cost: Decimal


@dataclass(frozen=True)
class MatchedLot:
    tx_date: date
    amount: Decimal
    unit_cost: Decimal

    @property
    def cost_basis(self) -> Decimal:
        with exact_arithmetic():
            return self.amount * self.unit_cost


def to_decimal(value: Any) -> Decimal:
    """Parse an amount from input.  Can be string or numeric.

    Extra whitespace and thousands separators are valid, $ or € signs
    are not.  Floats go through ``str`` so that 0.1 becomes
    ``Decimal('0.1')`` rather than its binary expansion.

    Example:
        >>> from lifo_cost_basis.cost_basis import to_decimal
        >>> to_decimal(" 1,250.5 ")
        Decimal('1250.5')
        >>> to_decimal(0.1)
        Decimal('0.1')
    """

    if isinstance(value, bool):
        raise TypeError(f"Invalid amount {value}")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, numbers.Real):
        result = Decimal(str(value))
    elif isinstance(value, str):
        clean_value = "".join(value.replace(',', '').split())
        try:
            result = Decimal(clean_value)
        except InvalidOperation:
            raise ValueError(f"Invalid amount {value}")
    else:
        raise TypeError(f"Invalid amount {value}")

    if not result.is_finite():
        raise ValueError(f"Amount is not a finite number: {value}")

    return result


def stable_repr(tx: Transaction) -> str:
    """Render a transaction as JSON with sorted keys.

    Only meant for error messages; the output is the same from one run
    to the next but is not a storage format.

    Example:
        >>> from datetime import date
        >>> from decimal import Decimal
        >>> from lifo_cost_basis.cost_basis import Transaction, stable_repr
        >>> stable_repr(Transaction("BTC", Decimal("-1"), Decimal("0"),
        ...     date(2024, 1, 2)))
        '{"amount": "-1", "asset": "BTC", "price": "0", "tx_date": "2024-01-02"}'
    """
    return json.dumps(asdict(tx), sort_keys=True, default=str)


class LifoCostBasisCalculator:
    """A cost basis calculator with LIFO (Last In, First Out) semantics.

    Each instance tracks the lots of a single asset.  Lots are kept
    oldest first, so the end of ``lots`` is the top of the stack.
    Transactions must be passed in chronological order; the calculator
    does not sort or check dates.

    Instances are not thread safe.  Calculators for different assets
    share no state.

    Example:
        >>> from datetime import date
        >>> from decimal import Decimal
        >>> from lifo_cost_basis.cost_basis import (
        ...     LifoCostBasisCalculator, Transaction)
        >>> calc = LifoCostBasisCalculator("X")
        >>> calc.acquire(Transaction("X", Decimal(50), Decimal(10),
        ...     date(2024, 1, 1)))
        >>> calc.acquire(Transaction("X", Decimal(50), Decimal(20),
        ...     date(2024, 2, 1)))
        >>> [(m.amount, m.unit_cost) for m in calc.dispose(
        ...     Transaction("X", Decimal(-75), Decimal(30), date(2024, 3, 1)))]
        [(Decimal('50'), Decimal('20')), (Decimal('25'), Decimal('10'))]
        >>> calc.total_amount()
        Decimal('25')
    """

    def __init__(self, asset: str) -> None:
        self.asset = asset
        self.lots: List[Lot] = []

    def __len__(self) -> int:
        return len(self.lots)

    def __repr__(self) -> str:
        return f"LifoCostBasisCalculator({self.asset!r}, lots={self.lots!r})"

    def total_amount(self) -> Decimal:
        """Amount of the asset still held across all lots."""
        with exact_arithmetic():
            return sum((lot.amount for lot in self.lots), Decimal(0))

    def _check_asset(self, tx: Transaction) -> None:
        if tx.asset != self.asset:
            raise AssetMismatchError(self.asset, tx.asset)

    def acquire(self, tx: Transaction) -> None:
        """Record that the asset was acquired at a certain cost.

        Every acquisition becomes its own lot, even when it has the same
        price as the previous one or a zero amount.

        Args:
            tx (Transaction): the acquisition.  ``tx.price`` is the unit
                cost.

        Raises:
            AssetMismatchError: If ``tx.asset`` is not this asset.
            InvalidAcquisitionAmountError: If ``tx.amount`` is negative.
        """
        self._check_asset(tx)
        if tx.amount < 0:
            raise InvalidAcquisitionAmountError(
                f"Tried to acquire negative amount {tx.amount}"
            )

        self.lots.append(
            Lot(tx_date=tx.tx_date, amount=tx.amount, unit_cost=tx.price)
        )
        logger.debug("acquired %s %s at %s on %s", tx.amount, self.asset,
                     tx.price, tx.tx_date)

    def dispose(self, tx: Transaction) -> List[MatchedLot]:
        """Record that the asset was disposed of.

        Takes the disposal and reduces the lots from the most recent one
        backwards until the disposed amount is covered.

        Note that the lots are changed as they are matched.  If the lots
        run out, InsufficientLotsError is raised and the lots consumed
        so far stay consumed, which leaves the calculator empty.

        Args:
            tx (Transaction): the disposal.  ``tx.amount`` is negative
                or zero; ``tx.price`` is ignored.

        Returns:
            List[MatchedLot]: the matched lots, most recently acquired
                first.  Their amounts add up to ``-tx.amount``.

        Raises:
            AssetMismatchError: If ``tx.asset`` is not this asset.
            InvalidDisposalAmountError: If ``tx.amount`` is positive.
            InsufficientLotsError: If the lots held are less than the
                disposed amount.
        """
        self._check_asset(tx)
        if tx.amount > 0:
            raise InvalidDisposalAmountError(
                f"Tried to dispose positive amount {tx.amount}"
            )

        matched = []
        with exact_arithmetic():
            remaining = -tx.amount
            while remaining > 0:
                if not self.lots:
                    raise InsufficientLotsError(tx, remaining)

                lot = self.lots[-1]
                if lot.amount > remaining:
                    used = remaining
                    lot.amount -= used
                else:
                    used = lot.amount
                    self.lots.pop()
                remaining -= used

                matched.append(
                    MatchedLot(tx_date=lot.tx_date, amount=used,
                               unit_cost=lot.unit_cost)
                )
                logger.debug("matched %s %s acquired on %s at %s", used,
                             self.asset, lot.tx_date, lot.unit_cost)

        return matched


def replay_transactions(
        transactions: Iterable[Transaction],
        ledgers: Optional[Dict[str, LifoCostBasisCalculator]] = None,
) -> List[Tuple[Transaction, List[MatchedLot]]]:
    """Route transactions to one calculator per asset.

    Zero or positive amounts are acquisitions, negative amounts are
    disposals.  A calculator is created the first time an asset is
    seen.  Errors from the calculators are not caught.

    Args:
        transactions (Iterable[Transaction]): transactions for any
            number of assets, in chronological order.
        ledgers (Dict[str, LifoCostBasisCalculator], optional):
            calculators keyed by asset, reused and updated in place.
            A new mapping is used if omitted.

    Returns:
        List[Tuple[Transaction, List[MatchedLot]]]: every disposal
            with the lots it consumed, in input order.

    Example:
        >>> from datetime import date
        >>> from decimal import Decimal
        >>> from lifo_cost_basis.cost_basis import (
        ...     Transaction, replay_transactions)
        >>> txs = [Transaction("A", Decimal(2), Decimal(5), date(2024, 1, 1)),
        ...        Transaction("B", Decimal(1), Decimal(7), date(2024, 1, 2)),
        ...        Transaction("A", Decimal(-1), Decimal(6), date(2024, 1, 3))]
        >>> [(tx.asset, len(lots)) for tx, lots in replay_transactions(txs)]
        [('A', 1)]
    """

    if ledgers is None:
        ledgers = {}

    disposals = []
    for tx in transactions:
        calculator = ledgers.get(tx.asset)
        if calculator is None:
            calculator = LifoCostBasisCalculator(tx.asset)
            ledgers[tx.asset] = calculator

        if tx.amount < 0:
            disposals.append((tx, calculator.dispose(tx)))
        else:
            calculator.acquire(tx)

    return disposals


def record_disposal(form8949: List[Dict[str, str]], asset: str,
                    matched_lots: Iterable[MatchedLot], sale_price: Decimal,
                    sale_date: date) -> None:
    """Record a disposal.

    Appends one row per matched lot to the Form 8949 rows.  Proceeds
    are the lot amount times the sale price and the cost basis is the
    lot amount times its unit cost.  Rows where both round to less than
    a cent are skipped.

    Args:
        form8949 (List[Dict[str, str]]): Form 8949 list of dicts
            holding txs.
        asset (str): The asset name.
        matched_lots (Iterable[MatchedLot]): lots returned by
            ``LifoCostBasisCalculator.dispose``.
        sale_price (Decimal): The sale price per unit.
        sale_date (date): The sale date.

    Returns:
        None.

    Example:
        >>> from datetime import date
        >>> from decimal import Decimal
        >>> from lifo_cost_basis.cost_basis import MatchedLot, record_disposal
        >>> form8949 = list()
        >>> record_disposal(form8949, "TSLA",
        ...     [MatchedLot(date(2024, 1, 1), Decimal(10), Decimal(12))],
        ...     Decimal(9), date(2024, 12, 31))
        >>> form8949[0]["Description"]
        '10.00000000 TSLA'
        >>> form8949[0]["Gain or Loss"]
        '(30.00)'
    """

    if not isinstance(form8949, list):
        raise TypeError(
            "A list object must be passed. Create form8949 list first."
        )

    with exact_arithmetic(trap_inexact=False):
        _append_rows(form8949, asset, matched_lots, sale_price, sale_date)


def _append_rows(form8949: List[Dict[str, str]], asset: str,
                 matched_lots: Iterable[MatchedLot], sale_price: Decimal,
                 sale_date: date) -> None:
    for lot in matched_lots:
        if as_date(lot.tx_date) > as_date(sale_date):
            raise ValueError(
                f"Acquisition date must be before sale date.\n"
                f"{lot.amount} {asset} sale on {sale_date} is invalid."
            )

        proceeds = (lot.amount * sale_price).quantize(CENTS)
        cost_basis = lot.cost_basis.quantize(CENTS)
        if proceeds == 0 and cost_basis == 0:
            continue

        # place negative numbers in parentheses
        gain_or_loss = proceeds - cost_basis
        if gain_or_loss < 0:
            gain_or_loss_str = f"({-gain_or_loss})"
        else:
            gain_or_loss_str = f"{gain_or_loss}"

        form8949.append({
            "Description": f"{lot.amount.quantize(UNITS)} {asset}",
            "Date Acquired": lot.tx_date.strftime("%m/%d/%Y"),
            "Date Sold": sale_date.strftime("%m/%d/%Y"),
            "Proceeds": f"{proceeds}",
            "Cost Basis": f"{cost_basis}",
            "Gain or Loss": gain_or_loss_str,
        })


def read_transactions(input_file_path: str) -> List[Transaction]:
    """Read transactions from a CSV file.

    Rows are sorted by date; rows on the same date keep their order in
    the file.
    """
    df = pd.read_csv(input_file_path, dtype={"Amount (asset)": str,
                                             "Price ($)": str})
    df["Tx Date"] = pd.to_datetime(df["Date"]).dt.date
    df = df.sort_values("Tx Date", kind="stable")

    return [
        Transaction(asset=row["Asset"],
                    amount=to_decimal(row["Amount (asset)"]),
                    price=to_decimal(row["Price ($)"]),
                    tx_date=row["Tx Date"])
        for _, row in df.iterrows()
    ]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Calculate LIFO cost basis and write Form 8949 rows."
    )
    parser.add_argument("--input", default="asset_tx.csv",
                        help="transactions CSV (default: %(default)s)")
    parser.add_argument("--output", default="form8949_output.csv",
                        help="Form 8949 CSV to write (default: %(default)s)")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="logging level (default: %(default)s)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Run the LIFO capital-gains pipeline on a transactions CSV.

    This function produces an IRS Form 8949 style output file.  It
    reads the input CSV, replays every transaction through one LIFO
    calculator per asset and writes one row per matched lot to the
    output CSV.
    """
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level,
                        format="%(levelname)s %(name)s: %(message)s")

    transactions = read_transactions(args.input)
    logger.info("read %d transactions from %s", len(transactions),
                args.input)

    # Prepare output for Form 8949
    form8949 = []

    for tx, matched_lots in replay_transactions(transactions):
        record_disposal(form8949, tx.asset, matched_lots, tx.price,
                        tx.tx_date)

    # Create .csv with output for f8949
    pd.DataFrame(form8949, columns=["Description", "Date Acquired",
                                    "Date Sold", "Proceeds", "Cost Basis",
                                    "Gain or Loss"]).to_csv(args.output,
                                                            index=False)
    print("Success! Form 8949 data saved to " + args.output)


if __name__ == "__main__":

    main()
