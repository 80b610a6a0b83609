"""
Sequential order numbers, scoped by calendar month.

Format:  <prefix><YY><MM><NNN>   e.g. CMD2503001

The counter restarts at 001 every month and tops out at 999.  Allocation
must run inside the transaction that inserts the order header, so that the
read of the current maximum and the insert are serialized.
"""
import logging
from datetime import date
from typing import Callable

from .backend import escape_like
from .errors import BackendError, SequenceExhaustionError

logger = logging.getLogger(__name__)

SEQUENCE_DIGITS = 3
MAX_SEQUENCE = 10 ** SEQUENCE_DIGITS - 1


class OrderNumberGenerator:
    """
    Usage:
        numbers = OrderNumberGenerator()
        with backend.transaction() as tx:
            order_number = numbers.next_number(tx)
    """

    def __init__(self, prefix: str = "CMD", clock: Callable[[], date] = date.today):
        self.prefix = prefix
        self.clock = clock

    def month_prefix(self) -> str:
        return f"{self.prefix}{self.clock().strftime('%y%m')}"

    def next_number(self, executor) -> str:
        """
        Highest number of the current month plus one.

        ``executor`` is a Backend or an open transaction scope.  Backend
        failures propagate unchanged.
        """
        month = self.month_prefix()
        rows = executor.select(
            "amg_supplier_orders",
            columns=["order_number"],
            filters=[("order_number", "ilike", f"{escape_like(month)}%")],
            order=[("order_number", False)],
            limit=1,
        ).rows

        sequence = 1
        if rows:
            last = rows[0]["order_number"]
            try:
                sequence = int(last[-SEQUENCE_DIGITS:]) + 1
            except (TypeError, ValueError) as exc:
                raise BackendError(f"Cannot parse stored order number {last!r}") from exc

        if sequence > MAX_SEQUENCE:
            raise SequenceExhaustionError(
                f"All {MAX_SEQUENCE} order numbers for {month} are used"
            )

        number = f"{month}{sequence:0{SEQUENCE_DIGITS}d}"
        logger.debug("Next order number: %s", number)
        return number
