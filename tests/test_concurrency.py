"""
Concurrent duplicate deliveries.

Each intake path runs as an independent request handler; the only
coordination is the unique constraints of the order and commission stores.
These tests fire the same work from several threads at once.
"""

from __future__ import annotations

import threading
from typing import Callable, List

from domain.order import PaymentStatus
from fakes import checkout_event, sign_payload

WORKERS = 8


def _run_concurrently(target: Callable[[], object]) -> List[object]:
    barrier = threading.Barrier(WORKERS)
    results: List[object] = []
    errors: List[BaseException] = []
    lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        try:
            outcome = target()
        except BaseException as e:
            with lock:
                errors.append(e)
            return
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(WORKERS)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    return results


def test_concurrent_webhook_deliveries_create_one_order(webhook_service, stores) -> None:
    payload = checkout_event("sess_123")
    signature = sign_payload(payload)

    results = _run_concurrently(lambda: webhook_service.handle(payload, signature))

    orders = stores.orders.by_reference("sess_123")
    assert len(orders) == 1
    assert len(stores.commissions.for_order(orders[0].id)) == 1
    assert sum(1 for r in results if r.outcome == "created") == 1
    assert {r.order_id for r in results} == {orders[0].id}


def test_concurrent_confirmations_create_one_commission(intake, stores, submission) -> None:
    order = intake.submit_direct_order(submission).order

    _run_concurrently(lambda: intake.confirm_order_payment(order.id))

    assert stores.orders.get_order_by_id(order.id).payment_status == PaymentStatus.PAID
    assert len(stores.commissions.for_order(order.id)) == 1


def test_concurrent_webhooks_for_pending_checkout_create_one_commission(
    webhook_service, intake, stores, submission
) -> None:
    checkout = intake.create_checkout_session(submission)
    payload = checkout_event(checkout.session.id)
    signature = sign_payload(payload)

    _run_concurrently(lambda: webhook_service.handle(payload, signature))

    assert len(stores.orders.orders) == 1
    assert len(stores.commissions.for_order(checkout.order.id)) == 1
