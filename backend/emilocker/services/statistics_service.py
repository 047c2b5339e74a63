# Overview: Shop statistics aggregator; recomputes the denormalized counters on Shop.

"""
Shop Statistics

recompute(shop_id) derives the snapshot from the users table with one
aggregate query and writes it onto the shop row:

    total_users          every user with this shop_id (owner included)
    active_users         users with is_active
    locked_devices       users whose device mirror says locked
    total_revenue_cents  sum of emi_paid_amount_cents

Deterministic and idempotent: running it twice without an intervening
mutation yields the same snapshot.
"""

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Shop, User
from ..time_utils import utcnow
from .concurrency import commit, store_call


def compute(shop_id: int) -> dict:
    with store_call("computing shop statistics"):
        row = db.session.query(
            func.count(User.id),
            func.coalesce(func.sum(case((User.is_active.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((User.device_is_locked.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(User.emi_paid_amount_cents), 0),
        ).filter(User.shop_id == shop_id).one()

    total, active, locked, revenue = row
    return {
        "total_users": int(total),
        "active_users": int(active),
        "locked_devices": int(locked),
        "total_revenue_cents": int(revenue),
    }


def recompute(shop_id: int | None, *, do_commit: bool = True) -> dict | None:
    """
    Recompute and persist one shop's statistics.

    Returns the snapshot, or None if shop_id is None or the shop is gone.
    """
    if shop_id is None:
        return None
    shop = db.session.query(Shop).filter_by(id=shop_id).first()
    if not shop:
        return None

    stats = compute(shop_id)
    shop.stat_total_users = stats["total_users"]
    shop.stat_active_users = stats["active_users"]
    shop.stat_locked_devices = stats["locked_devices"]
    shop.stat_total_revenue_cents = stats["total_revenue_cents"]
    shop.stats_updated_at = utcnow()

    if do_commit:
        commit("saving shop statistics")
    return stats


def recompute_many(shop_ids) -> dict[int, dict]:
    """Recompute each distinct shop once."""
    results = {}
    for shop_id in dict.fromkeys(s for s in shop_ids if s is not None):
        stats = recompute(shop_id)
        if stats is not None:
            results[shop_id] = stats
    return results


def recompute_all() -> int:
    shop_ids = [row[0] for row in db.session.query(Shop.id).order_by(Shop.id).all()]
    return len(recompute_many(shop_ids))
