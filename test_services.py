# test_services.py
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from tableside.models.core import OrderStatus, SplitStatus
from tableside.services import order_flow
from tableside.services.billing import money, splits_match_total, split_status, extra_charges_amount
from tableside.services.numbering import day_prefix
from tableside.services.pricing import parse_selections, check_declared_price


def _order(status):
    return SimpleNamespace(
        status=status, waiter_id=None, cook_id=None, served_by=None,
        preparing_at=None, ready_at=None, served_at=None, cancellation_reason=None,
    )


def test_money_rounds_half_up():
    assert money(0.125) == Decimal("0.13")
    assert money(2.675) == Decimal("2.68")
    assert money("10") == Decimal("10.00")
    assert money(None) == Decimal("0.00")


def test_split_tolerance_is_one_cent():
    assert splits_match_total([50, 50], 99.995)
    assert splits_match_total([33.33, 33.33, 33.33], 100)
    assert not splits_match_total([50, 49.98], 100)
    assert not splits_match_total([60, 50], 100)


def test_split_status():
    assert split_status(0, 150) == SplitStatus.PENDING
    assert split_status(Decimal("100"), Decimal("150")) == SplitStatus.PARTIAL_PAID
    assert split_status(150, 150) == SplitStatus.PAID


def test_extra_charges():
    charges = [
        {"description": "Service", "amount": 10, "isPercentage": True},
        {"description": "Corkage", "amount": 5},
        {"description": "Tax", "amount": 2.5, "is_percentage": True},
    ]
    # 10% + 5 + 2.5% of 200
    assert extra_charges_amount(charges, Decimal("200")) == Decimal("30.00")
    assert extra_charges_amount(None, 100) == Decimal("0.00")


def test_parse_selections_shapes():
    assert parse_selections(None) == {}
    assert parse_selections("") == {}
    assert parse_selections({"s1": "o1"}) == {"s1": ["o1"]}
    assert parse_selections('{"s1": ["o1", "o2"], "s2": null}') == {"s1": ["o1", "o2"]}
    with pytest.raises(HTTPException) as e:
        parse_selections("not json")
    assert e.value.status_code == 400
    with pytest.raises(HTTPException):
        parse_selections(["o1"])


def test_declared_price_rules():
    assert check_declared_price(None, Decimal("12.00")) == Decimal("12.00")
    assert check_declared_price(11.5, Decimal("12.00")) == Decimal("11.50")
    assert check_declared_price(12.004, Decimal("12.00"), trust_client=False) == Decimal("12.00")
    with pytest.raises(HTTPException):
        check_declared_price(11.5, Decimal("12.00"), trust_client=False)
    with pytest.raises(HTTPException):
        check_declared_price(0, Decimal("12.00"))


def test_day_prefix():
    from datetime import datetime, timezone
    assert day_prefix("ORD", datetime(2024, 3, 9, tzinfo=timezone.utc)) == "ORD-20240309"


@pytest.mark.parametrize(
    "action,source,target",
    [
        ("confirm", OrderStatus.PENDING, OrderStatus.CONFIRMED),
        ("start_preparing", OrderStatus.CONFIRMED, OrderStatus.PREPARING),
        ("mark_ready", OrderStatus.PREPARING, OrderStatus.READY),
        ("mark_delivered", OrderStatus.READY, OrderStatus.DELIVERED),
    ],
)
def test_transition_table(action, source, target):
    o = _order(source)
    previous = order_flow.apply_action(o, action, "staff-1")
    assert previous == source
    assert o.status == target


def test_rejected_transition_leaves_order_untouched():
    for status in OrderStatus:
        if status == OrderStatus.CONFIRMED:
            continue
        o = _order(status)
        with pytest.raises(HTTPException) as e:
            order_flow.apply_action(o, "start_preparing", "staff-1")
        assert e.value.status_code == 400
        assert o.status == status
        assert o.preparing_at is None and o.cook_id is None


def test_actor_fields_per_action():
    o = _order(OrderStatus.PENDING)
    order_flow.apply_action(o, "confirm", "owner", "waiter-7")
    assert o.waiter_id == "waiter-7"
    order_flow.apply_action(o, "start_preparing", "cook-3")
    assert o.cook_id == "cook-3" and o.preparing_at is not None
    order_flow.apply_action(o, "mark_ready", "cook-3")
    order_flow.apply_action(o, "mark_delivered", "owner", "runner-1")
    assert o.served_by == "runner-1" and o.served_at is not None


def test_cancel_rules():
    o = _order(OrderStatus.PREPARING)
    with pytest.raises(HTTPException):
        order_flow.cancel(o, "  ")
    assert order_flow.cancel(o, " kitchen fire ") == OrderStatus.PREPARING
    assert o.status == OrderStatus.CANCELLED and o.cancellation_reason == "kitchen fire"
    with pytest.raises(HTTPException):
        order_flow.cancel(_order(OrderStatus.DELIVERED), "late")


def test_status_to_action_mapping():
    assert order_flow.action_for_status("READY") == "mark_ready"
    with pytest.raises(HTTPException):
        order_flow.action_for_status("PENDING")
    with pytest.raises(HTTPException):
        order_flow.action_for_status("nope")
