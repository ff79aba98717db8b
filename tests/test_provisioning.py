from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app import create_app
from config import TestingConfig
from conftest import FakeGateway, make_user, subscription_count
from models import db
from models.plan import SubscriptionPlan
from models.subscription import Subscription
from models.transaction import Transaction
import utils.provisioning as provisioning
from utils.exceptions import StorageError
from utils.provisioning import provision
from utils.reconciliation import reconcile


def test_provision_creates_active_subscription_with_period(pending_transaction, plan):
    start = datetime(2024, 1, 31, 9, 30)

    subscription, created = provision(pending_transaction, now=start)
    db.session.commit()

    assert created is True
    assert subscription.status == "active"
    assert subscription.start_date == start
    assert subscription.end_date == datetime(2024, 2, 29, 9, 30)
    assert subscription.amount == Decimal("50000.00")
    assert subscription.transaction_id == pending_transaction.id
    assert subscription.user_id == pending_transaction.user_id
    assert subscription.creator_id == plan.creator_id


def test_yearly_plan_period(pending_transaction, plan):
    plan.interval = "yearly"
    db.session.commit()

    subscription, _ = provision(pending_transaction, now=datetime(2023, 3, 1))

    assert subscription.end_date == datetime(2024, 3, 1)


def test_provision_is_idempotent_per_transaction(pending_transaction):
    first, created_first = provision(pending_transaction)
    db.session.commit()
    second, created_second = provision(pending_transaction)

    assert created_first is True
    assert created_second is False
    assert first.id == second.id
    assert subscription_count() == 1


def test_active_subscription_to_same_creator_is_returned(make_transaction):
    first_txn = make_transaction(order_id="SUBS-A")
    second_txn = make_transaction(order_id="SUBS-B")

    first, _ = provision(first_txn)
    db.session.commit()
    again, created = provision(second_txn)

    assert created is False
    assert again.id == first.id
    assert subscription_count(status="active") == 1


def test_expired_subscription_does_not_block_new_one(make_transaction):
    old_txn = make_transaction(order_id="SUBS-OLD")
    old, _ = provision(old_txn)
    old.status = "expired"
    db.session.commit()

    new, created = provision(make_transaction(order_id="SUBS-NEW"))
    db.session.commit()

    assert created is True
    assert new.id != old.id
    assert subscription_count(status="active") == 1


def test_other_users_are_independent(make_transaction, plan):
    other = make_user(name="Other", email="other@example.com")

    provision(make_transaction(order_id="SUBS-ME"))
    provision(make_transaction(order_id="SUBS-THEM", user=other))
    db.session.commit()

    assert subscription_count(creator_id=plan.creator_id, status="active") == 2


def test_concurrent_duplicate_for_same_transaction_returns_winner(pending_transaction, monkeypatch):
    """The pre-check loses the race; the unique constraint decides."""
    winner, _ = provision(pending_transaction)
    db.session.commit()

    monkeypatch.setattr(provisioning, "_existing_subscription", _lose_first_check(provisioning._existing_subscription))

    result, created = provision(pending_transaction)
    db.session.commit()

    assert created is False
    assert result.id == winner.id
    assert subscription_count(transaction_id=pending_transaction.id) == 1


def test_concurrent_active_subscription_race_returns_winner(make_transaction, monkeypatch):
    winner, _ = provision(make_transaction(order_id="SUBS-WINNER"))
    db.session.commit()

    monkeypatch.setattr(provisioning, "_existing_subscription", _lose_first_check(provisioning._existing_subscription))

    result, created = provision(make_transaction(order_id="SUBS-LOSER"))
    db.session.commit()

    assert created is False
    assert result.id == winner.id
    assert subscription_count(status="active") == 1


def test_race_keeps_the_transaction_update(pending_transaction, monkeypatch):
    """A lost provisioning race must not roll back the status update around it."""
    provision(pending_transaction)
    pending_transaction.status = "pending"
    db.session.commit()

    monkeypatch.setattr(provisioning, "_existing_subscription", _lose_first_check(provisioning._existing_subscription))

    result = reconcile(pending_transaction, "settlement", "accept", {"order_id": pending_transaction.order_id})
    db.session.commit()
    db.session.expire_all()

    assert result.subscription_created is False
    assert pending_transaction.status == "settlement"
    assert subscription_count() == 1


def test_constraint_violation_without_winner_is_storage_error(pending_transaction, monkeypatch):
    monkeypatch.setattr(provisioning, "_existing_subscription", lambda transaction, now: None)

    def failing_insert(transaction, amount, now):
        raise provisioning.ProvisioningConflict("constraint violated")

    monkeypatch.setattr(provisioning, "_insert_subscription", failing_insert)

    with pytest.raises(StorageError):
        provision(pending_transaction)


def test_partial_index_allows_many_inactive_rows(make_transaction, plan, subscriber):
    for i, status in enumerate(["cancelled", "expired", "cancelled"]):
        db.session.add(Subscription(
            user_id=subscriber.id,
            creator_id=plan.creator_id,
            plan_id=plan.id,
            status=status,
            start_date=datetime(2023, 1, 1),
            end_date=datetime(2023, 2, 1),
            amount=Decimal("50000.00"),
        ))
    db.session.commit()

    assert subscription_count(user_id=subscriber.id) == 3

def test_lapsed_active_subscription_does_not_block_renewal(make_transaction):
    """An active row past its end date that the sweep has not reached yet is expired, not reused."""
    now = datetime(2024, 6, 1, 12, 0)
    old, _ = provision(make_transaction(order_id="SUBS-OLD"), now=now - timedelta(days=40))
    db.session.commit()
    renewal = make_transaction(order_id="SUBS-NEW")

    new, created = provision(renewal, now=now)
    db.session.commit()

    assert created is True
    assert new.transaction_id == renewal.id
    assert new.end_date == datetime(2024, 7, 1, 12, 0)
    db.session.expire_all()
    assert db.session.get(Subscription, old.id).status == "expired"
    assert subscription_count(status="active") == 1


def test_subscription_ending_now_still_blocks(make_transaction):
    now = datetime(2024, 6, 1, 12, 0)
    first, _ = provision(make_transaction(order_id="SUBS-OLD"), now=datetime(2024, 5, 1, 12, 0))
    db.session.commit()

    again, created = provision(make_transaction(order_id="SUBS-NEW"), now=now)

    assert created is False
    assert again.id == first.id


def test_two_writers_race_is_settled_by_the_constraint(tmp_path, monkeypatch):
    """Two sessions on one database file: the late writer's insert hits the index and returns the winner."""

    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'race.db'}"

    app = create_app(FileConfig, gateway=FakeGateway())
    with app.app_context():
        subscriber = make_user()
        creator = make_user(name="Dewi Creates", email="dewi@example.com", role="creator")
        plan = SubscriptionPlan(creator_id=creator.id, name="Gold Tier", price=Decimal("50000.00"))
        db.session.add(plan)
        db.session.commit()
        order_ids = {}
        for order_id in ("SUBS-RIVAL", "SUBS-LATE"):
            transaction = Transaction(
                order_id=order_id,
                user_id=subscriber.id,
                creator_id=creator.id,
                plan_id=plan.id,
                amount=plan.price,
                status="settlement",
            )
            db.session.add(transaction)
            db.session.commit()
            order_ids[order_id] = transaction.id

    real_check = provisioning._existing_subscription
    rival = {}

    def check_then_rival_commits(transaction, now):
        found = real_check(transaction, now)
        if not rival:
            rival["started"] = True
            # End this session's read so the rival writer is not blocked by it.
            db.session.rollback()
            with app.app_context():
                subscription, created = provision(db.session.get(Transaction, order_ids["SUBS-RIVAL"]))
                db.session.commit()
                rival["id"] = subscription.id
                rival["created"] = created
        return found

    monkeypatch.setattr(provisioning, "_existing_subscription", check_then_rival_commits)

    with app.app_context():
        late = db.session.get(Transaction, order_ids["SUBS-LATE"])
        result, created = provision(late)
        db.session.commit()

        assert rival["created"] is True
        assert created is False
        assert result.id == rival["id"]
        assert subscription_count(status="active") == 1
        assert subscription_count(transaction_id=order_ids["SUBS-LATE"]) == 0
        db.engine.dispose()


def _lose_first_check(real_check):
    """Wrap the pre-check so its first call misses, as if a concurrent insert had not committed yet."""
    calls = {"n": 0}

    def check(transaction, now):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return real_check(transaction, now)

    return check
