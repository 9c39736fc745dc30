# Overview: Catalog maintenance; validated add/delete of items and happy-hour rule reads.

from __future__ import annotations

import logging

from ..repositories import CatalogItem, HappyHour, Repositories
from ..validation import ValidationError, parse_money, require_text

logger = logging.getLogger(__name__)


def _parse_stock_count(value):
    """None/"" means untracked."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("stock_count must be an integer")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError("stock_count must be an integer")
    if count < 0:
        raise ValidationError("stock_count must be >= 0")
    return count


def list_items(repos: Repositories, category: str | None = None) -> list[CatalogItem]:
    items = repos.catalog.list()
    if category and category != "all":
        items = [i for i in items if i.category == category]
    return items


def add_item(repos: Repositories, payload: dict) -> CatalogItem:
    name = require_text(payload.get("name"), "name")
    price = parse_money(payload.get("price"), "price")
    category = require_text(payload.get("category"), "category")
    tier = payload.get("tier") or None
    stock_count = _parse_stock_count(payload.get("stock_count"))

    with repos.unit_of_work():
        item = repos.catalog.add(
            name=name,
            price=price,
            category=category,
            tier=tier,
            stock_count=stock_count,
        )
    logger.info("Added catalog item %s (%s) at %s", item.id, item.name, item.price)
    return item


def delete_item(repos: Repositories, item_id: int) -> None:
    """Raises ConflictError while the item is on an open tab."""
    with repos.unit_of_work():
        repos.catalog.delete(item_id)
    logger.info("Deleted catalog item %s", item_id)


def list_happy_hours(repos: Repositories) -> list[HappyHour]:
    return repos.happy_hours.list()
