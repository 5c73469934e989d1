"""
Order execution.

`OrderExecutor` turns an `OrderRequest` into a fill by coordinating the
account ledger, the position book and the risk validator.  The steps
are strictly sequential and nothing is committed until the last one
succeeds:

1. load the account;
2. run the pre-trade risk checks;
3. price the order from the market data source at the order time;
4. compute the commission;
5. buy: reserve cost plus commission, then open the position
   (the reservation is released if opening fails);
   sell: pick the open lot, close it, then credit the proceeds.

Business failures come back as a failed `OrderResult`.  The only
exception allowed through is `TemporalViolationError`, which means the
run itself is invalid.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..data.market_data import MarketDataSource
from .errors import (
    InsufficientFundsError,
    InsufficientQuantityError,
    NoOpenPositionError,
    NotFoundError,
    TemporalViolationError,
    TradingError,
    ValidationFailedError,
)
from .ledger import AccountLedger, AccountLocks
from .models import Account, OrderError, OrderRequest, OrderResult, OrderSide, Position
from .positions import PositionBook
from .risk import RiskValidator

logger = logging.getLogger(__name__)

DEFAULT_EXIT_REASON = "User requested"


class FlatCommission:
    """Charge the same fee on every order."""

    def __init__(self, fee: float = 5.0) -> None:
        self.fee = fee

    def __call__(self, quantity: int, price: float) -> float:
        return self.fee


class PerShareCommission:
    """Charge `rate` per share with an optional minimum ticket."""

    def __init__(self, rate: float, minimum: float = 0.0) -> None:
        self.rate = rate
        self.minimum = minimum

    def __call__(self, quantity: int, price: float) -> float:
        return max(self.rate * quantity, self.minimum)


_ERROR_KINDS = (
    (NotFoundError, OrderError.NOT_FOUND),
    (ValidationFailedError, OrderError.VALIDATION_FAILED),
    (InsufficientFundsError, OrderError.INSUFFICIENT_FUNDS),
    (InsufficientQuantityError, OrderError.INSUFFICIENT_QUANTITY),
    (NoOpenPositionError, OrderError.NO_OPEN_POSITION),
)


def _error_kind(exc: TradingError) -> OrderError:
    for exc_type, kind in _ERROR_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return OrderError.INTERNAL


class OrderExecutor:
    """Execute orders atomically against one ledger and one position book.

    Parameters
    ----------
    ledger : AccountLedger
        Cash side of every fill.
    positions : PositionBook
        Share side of every fill.
    risk : RiskValidator
        Pre-trade checks.
    commission : callable, optional
        ``commission(quantity, price) -> float``.  Defaults to a flat
        $5 fee.
    credit_net_proceeds : bool
        When true (the default) a sale credits ``price * quantity -
        commission`` so that cash moves by exactly the reported net P&L.
        When false the gross proceeds are credited and the commission
        only shows up in the reported P&L.
    """

    def __init__(
        self,
        ledger: AccountLedger,
        positions: PositionBook,
        risk: RiskValidator,
        commission=None,
        credit_net_proceeds: bool = True,
    ) -> None:
        self.ledger = ledger
        self.positions = positions
        self.risk = risk
        self.commission = commission or FlatCommission()
        self.credit_net_proceeds = credit_net_proceeds
        if positions.locks is not ledger.locks:
            raise ValueError("ledger and position book must share one AccountLocks registry")
        self.locks: AccountLocks = ledger.locks

    def execute(self, order: OrderRequest, market: MarketDataSource) -> OrderResult:
        logger.info(
            "Executing %s order for %s: %s shares",
            order.side.value, order.symbol, order.quantity,
        )
        try:
            with self.locks.hold(order.account_id):
                return self._execute(order, market)
        except TemporalViolationError:
            raise
        except TradingError as exc:
            kind = _error_kind(exc)
            logger.warning("Order failed (%s): %s", kind.value, exc)
            return self._failed(order, kind, str(exc))
        except Exception as exc:
            logger.exception("Error executing order for %s", order.symbol)
            return self._failed(order, OrderError.INTERNAL, str(exc))

    def _execute(self, order: OrderRequest, market: MarketDataSource) -> OrderResult:
        account = self.ledger.get(order.account_id)

        reference_price = order.reference_price
        if reference_price is None:
            reference_price = market.price_at(order.symbol, order.timestamp).close
        validation = self.risk.validate(order, account, reference_price)
        if not validation.is_valid:
            raise ValidationFailedError(validation.error_message)

        execution_price = market.price_at(order.symbol, order.timestamp).close
        commission = self.commission(order.quantity, execution_price)

        if order.side is OrderSide.BUY:
            return self._buy(order, account, execution_price, commission)
        return self._sell(order, account, execution_price, commission)

    def _buy(self, order: OrderRequest, account: Account, price: float, commission: float) -> OrderResult:
        total_cost = price * order.quantity + commission
        self.ledger.reserve(account.id, total_cost)
        try:
            position = self.positions.open(
                account.id,
                order.symbol,
                price,
                order.quantity,
                order.timestamp,
                order.stop_loss,
            )
        except Exception:
            self.ledger.release(account.id, total_cost)
            raise

        logger.info(
            "Buy order executed: %s %s @ $%.2f, Commission: $%.2f",
            order.symbol, order.quantity, price, commission,
        )
        return OrderResult(
            is_success=True,
            execution_time=order.timestamp,
            position_id=position.id,
            execution_price=price,
            commission=commission,
        )

    def _select_position(self, order: OrderRequest, account: Account) -> Position:
        if order.position_id is not None:
            position = self.positions.get(order.position_id)
            if position.is_open and position.account_id == account.id and position.symbol == order.symbol:
                return position
            raise NoOpenPositionError(f"Position {order.position_id} is not an open {order.symbol} position")
        for position in self.positions.open_positions(account.id):
            if position.symbol == order.symbol:
                return position
        raise NoOpenPositionError(f"No open position for {order.symbol}")

    def _sell(self, order: OrderRequest, account: Account, price: float, commission: float) -> OrderResult:
        position = self._select_position(order, account)
        if order.quantity > position.quantity:
            raise InsufficientQuantityError(position.quantity, order.quantity)

        proceeds = price * order.quantity
        if self.credit_net_proceeds:
            proceeds -= commission
        # A sale worth less than its commission debits cash.
        if proceeds < 0 and self.ledger.available_balance(account) + proceeds < 0:
            raise InsufficientFundsError(account.id, -proceeds, account.current_cash)

        closed = self.positions.close(
            position.id,
            price,
            order.timestamp,
            order.exit_reason or DEFAULT_EXIT_REASON,
            quantity=order.quantity,
        )
        self.ledger.apply_pnl(account.id, proceeds)

        net_pl = closed.realized_pl - commission
        logger.info(
            "Sell order executed: %s %s @ $%.2f, P&L: $%.2f, Commission: $%.2f",
            order.symbol, order.quantity, price, net_pl, commission,
        )
        return OrderResult(
            is_success=True,
            execution_time=order.timestamp,
            position_id=closed.id,
            execution_price=price,
            commission=commission,
            realized_pl=closed.realized_pl,
        )

    @staticmethod
    def _failed(order: OrderRequest, kind: OrderError, message: Optional[str]) -> OrderResult:
        return OrderResult(
            is_success=False,
            execution_time=order.timestamp,
            error=kind,
            error_message=message,
        )
