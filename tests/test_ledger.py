import os
import sys
import threading

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tradesim.execution.errors import InsufficientFundsError, NotFoundError
from tradesim.execution.ledger import AccountLedger, InMemoryAccountStore
from tradesim.execution.models import Account

import unittest


def _ledger(cash: float = 100_000.0) -> AccountLedger:
    store = InMemoryAccountStore()
    store.save(Account(id=1, initial_capital=100_000.0, current_cash=cash, name="Test"))
    return AccountLedger(store)


class TestAccountLedger(unittest.TestCase):
    def test_unknown_account_is_not_created(self) -> None:
        ledger = _ledger()
        with self.assertRaises(NotFoundError):
            ledger.get(2)
        with self.assertRaises(NotFoundError):
            ledger.reserve(2, 10.0)

    def test_reserve_deducts_cash(self) -> None:
        ledger = _ledger()
        ledger.reserve(1, 15_005.0)
        self.assertEqual(ledger.get(1).current_cash, 84_995.0)
        self.assertEqual(ledger.available_balance(ledger.get(1)), 84_995.0)

    def test_reserve_exact_balance_is_allowed(self) -> None:
        ledger = _ledger(cash=500.0)
        ledger.reserve(1, 500.0)
        self.assertEqual(ledger.get(1).current_cash, 0.0)

    def test_failed_reserve_leaves_cash_unchanged(self) -> None:
        ledger = _ledger(cash=1_000.0)
        with self.assertRaises(InsufficientFundsError) as ctx:
            ledger.reserve(1, 1_000.01)
        self.assertEqual(ctx.exception.available, 1_000.0)
        self.assertEqual(ledger.get(1).current_cash, 1_000.0)

    def test_release_and_apply_pnl(self) -> None:
        ledger = _ledger()
        ledger.reserve(1, 2_000.0)
        ledger.release(1, 2_000.0)
        self.assertEqual(ledger.get(1).current_cash, 100_000.0)
        ledger.apply_pnl(1, -250.0)
        ledger.apply_pnl(1, 1_000.0)
        self.assertEqual(ledger.get(1).current_cash, 100_750.0)

    def test_returned_account_is_a_copy(self) -> None:
        ledger = _ledger()
        account = ledger.get(1)
        account.current_cash = 0.0
        self.assertEqual(ledger.get(1).current_cash, 100_000.0)

    def test_concurrent_reservations_never_overdraw(self) -> None:
        ledger = _ledger(cash=1_000.0)
        failures = []

        def worker() -> None:
            for _ in range(50):
                try:
                    ledger.reserve(1, 10.0)
                except InsufficientFundsError:
                    failures.append(1)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(ledger.get(1).current_cash, 0.0)
        self.assertEqual(len(failures), 100)

    def test_accounts_are_saved_in_parallel(self) -> None:
        store = InMemoryAccountStore()
        ledger = AccountLedger(store)
        errors = []

        def worker(first_id: int) -> None:
            try:
                for account_id in range(first_id, first_id + 500):
                    store.save(Account(id=account_id, initial_capital=10.0, current_cash=10.0))
                    ledger.reserve(account_id, 10.0)
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n * 1_000,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(errors, [])
        self.assertEqual(ledger.get(3_499).current_cash, 0.0)


if __name__ == '__main__':
    unittest.main()
