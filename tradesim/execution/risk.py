"""
Pre-trade risk checks, stop-loss evaluation and position sizing.

All checks are estimates made with a quoted reference price rather than
the final execution price; in a daily backtest the two are the same
bar, and in live trading execution follows a moment later.
"""

from __future__ import annotations

import logging
import math

from .errors import InvalidStopPriceError
from .models import (
    OK,
    Account,
    DaysStopLoss,
    NoStopLoss,
    OrderRequest,
    OrderSide,
    Position,
    PriceStopLoss,
    StopDecision,
    ValidationResult,
)
from ..utils.timeutils import DateLike, whole_days_between

logger = logging.getLogger(__name__)

DEFAULT_MAX_POSITION_FRACTION = 0.25
DEFAULT_ESTIMATED_COMMISSION = 5.0


class RiskValidator:
    """Apply account-level risk rules.

    Parameters
    ----------
    max_position_fraction : float
        Largest share of the account's initial capital one order may move.
    estimated_commission : float
        Commission assumed when checking that a buy is affordable.
    cap_sells : bool
        Apply the position-size cap to sells as well as buys.  When
        false an exit is never refused for its size.
    """

    def __init__(
        self,
        max_position_fraction: float = DEFAULT_MAX_POSITION_FRACTION,
        estimated_commission: float = DEFAULT_ESTIMATED_COMMISSION,
        cap_sells: bool = True,
    ) -> None:
        self.max_position_fraction = max_position_fraction
        self.estimated_commission = estimated_commission
        self.cap_sells = cap_sells

    def validate(self, order: OrderRequest, account: Account, reference_price: float) -> ValidationResult:
        if not account.is_active:
            return ValidationResult(False, "Account is not active")

        if order.quantity <= 0:
            return ValidationResult(False, f"Order quantity must be positive, got {order.quantity}")

        is_buy = order.side is OrderSide.BUY
        order_value = reference_price * order.quantity
        max_position_value = account.initial_capital * self.max_position_fraction
        if (is_buy or self.cap_sells) and order_value > max_position_value:
            return ValidationResult(
                False,
                f"Order value ${order_value:,.2f} exceeds maximum position size ${max_position_value:,.2f}",
            )

        if not is_buy:
            return OK

        total_required = order_value + self.estimated_commission
        if total_required > account.current_cash:
            return ValidationResult(
                False,
                f"Insufficient funds. Required: ${total_required:,.2f}, Available: ${account.current_cash:,.2f}",
            )
        return OK

    def evaluate_stop_loss(self, position: Position, current_price: float, current_time: DateLike) -> StopDecision:
        stop = position.stop_loss
        if isinstance(stop, NoStopLoss):
            return StopDecision(False, "No stop loss configured")
        if isinstance(stop, PriceStopLoss):
            if current_price <= stop.threshold:
                return StopDecision(
                    True,
                    f"Price stop loss triggered: ${current_price:,.2f} <= ${stop.threshold:,.2f}",
                    current_price,
                )
        elif isinstance(stop, DaysStopLoss):
            days_held = whole_days_between(position.entry_time, current_time)
            if days_held >= stop.days:
                return StopDecision(
                    True,
                    f"Time-based stop loss triggered: held for {days_held} days",
                    current_price,
                )
        # TrailingStopLoss is reserved and never triggers.
        return StopDecision(False, "Stop loss conditions not met")

    def position_size(self, balance: float, risk_fraction: float, entry_price: float, stop_price: float) -> int:
        """Shares to buy so that hitting `stop_price` loses `balance * risk_fraction`."""
        if stop_price >= entry_price:
            raise InvalidStopPriceError("Stop loss price must be below entry price")
        risk_amount = balance * risk_fraction
        risk_per_share = entry_price - stop_price
        shares = math.floor(risk_amount / risk_per_share)
        logger.debug(
            "Calculated position size: %s shares (Risk: $%.2f, Risk/share: $%.2f)",
            shares, risk_amount, risk_per_share,
        )
        return shares
