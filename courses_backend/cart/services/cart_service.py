"""
CART SERVICE

All cart mutations go through here so views stay thin and checkout /
payment reconciliation can reuse the same rules.
"""

import logging
import uuid

from django.db import transaction
from django.db.models import Q

from cart.models import Cart, CartItem
from catalog.models import Course, Journey
from enrollments.services.access import owns_item

logger = logging.getLogger(__name__)


class CartError(Exception):
    pass


class CartNotFoundError(CartError):
    pass


class ItemNotFoundError(CartError):
    pass


class ItemAlreadyInCartError(CartError):
    pass


class ItemAlreadyOwnedError(CartError):
    pass


def _as_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def get_cart(user):
    return Cart.objects.filter(user=user).first()


def get_or_create_cart(user) -> Cart:
    cart, _ = Cart.objects.get_or_create(user=user)
    return cart


def cart_items(cart):
    if cart is None:
        return []
    return list(cart.items.select_related("course", "journey").order_by("created_at"))


def normalize_item(raw: dict):
    """
    Resolves one client line into (item_type, course_id, journey_id, quantity).

    Returns None for lines that cannot reference a catalog item.
    """
    item_type = str(raw.get("item_type") or "").strip().upper()
    course_id = _as_uuid(raw.get("course_id")) if raw.get("course_id") else None
    journey_id = _as_uuid(raw.get("journey_id")) if raw.get("journey_id") else None

    if not item_type:
        if course_id:
            item_type = CartItem.ItemType.COURSE
        elif journey_id:
            item_type = CartItem.ItemType.JOURNEY

    try:
        quantity = max(int(raw.get("quantity") or 1), 1)
    except (TypeError, ValueError):
        quantity = 1

    if item_type == CartItem.ItemType.COURSE and course_id:
        return (CartItem.ItemType.COURSE, course_id, None, quantity)
    if item_type == CartItem.ItemType.JOURNEY and journey_id:
        return (CartItem.ItemType.JOURNEY, None, journey_id, quantity)
    return None


@transaction.atomic
def replace_items(*, user, items) -> Cart:
    """
    Replaces the whole cart.

    Lines referencing unknown courses/journeys are dropped silently and
    duplicate lines collapse into the first occurrence.
    """
    normalized = [n for n in (normalize_item(raw) for raw in items or []) if n]

    valid_courses = set(
        Course.objects.filter(id__in=[n[1] for n in normalized if n[1]]).values_list("id", flat=True)
    )
    valid_journeys = set(
        Journey.objects.filter(id__in=[n[2] for n in normalized if n[2]]).values_list("id", flat=True)
    )

    cart = get_or_create_cart(user)
    cart.items.all().delete()

    seen = set()
    for item_type, course_id, journey_id, quantity in normalized:
        key = (item_type, course_id or journey_id)
        if key in seen:
            continue
        if course_id and course_id not in valid_courses:
            continue
        if journey_id and journey_id not in valid_journeys:
            continue

        seen.add(key)
        CartItem.objects.create(
            cart=cart,
            item_type=item_type,
            course_id=course_id,
            journey_id=journey_id,
            quantity=quantity,
        )

    cart.save(update_fields=["updated_at"])
    return cart


@transaction.atomic
def add_item(*, user, item_type: str, course_id=None, journey_id=None, quantity: int = 1) -> Cart:
    if item_type == CartItem.ItemType.COURSE:
        if not course_id or not Course.objects.filter(id=course_id).exists():
            raise ItemNotFoundError("Course not found")
        journey_id = None
    else:
        if not journey_id or not Journey.objects.filter(id=journey_id).exists():
            raise ItemNotFoundError("Journey not found")
        course_id = None

    if owns_item(user, course_id=course_id, journey_id=journey_id):
        raise ItemAlreadyOwnedError("You already have access to this item")

    cart = get_or_create_cart(user)

    lookup = {"course_id": course_id} if course_id else {"journey_id": journey_id}
    if cart.items.filter(**lookup).exists():
        raise ItemAlreadyInCartError("Item already in cart")

    CartItem.objects.create(
        cart=cart,
        item_type=item_type,
        course_id=course_id,
        journey_id=journey_id,
        quantity=max(int(quantity or 1), 1),
    )
    cart.save(update_fields=["updated_at"])

    logger.info(
        "Cart item added",
        extra={"user_id": str(user.pk), "item_type": item_type},
    )
    return cart


@transaction.atomic
def remove_item(*, user, item_id, item_type: str) -> Cart:
    cart = get_cart(user)
    if cart is None:
        raise CartNotFoundError("Cart not found")

    target_id = _as_uuid(item_id)
    if target_id is not None:
        item_type = str(item_type or "").upper()
        if item_type == CartItem.ItemType.COURSE:
            cart.items.filter(item_type=item_type, course_id=target_id).delete()
        elif item_type == CartItem.ItemType.JOURNEY:
            cart.items.filter(item_type=item_type, journey_id=target_id).delete()

    cart.save(update_fields=["updated_at"])
    return cart


@transaction.atomic
def clear_cart(*, user) -> Cart:
    cart = get_cart(user)
    if cart is None:
        raise CartNotFoundError("Cart not found")

    cart.items.all().delete()
    cart.save(update_fields=["updated_at"])
    return cart


def remove_purchased_items(*, user, course_ids=(), journey_ids=()) -> int:
    """
    Drops lines the user just paid for. A missing cart is not an error.
    """
    cart = get_cart(user)
    if cart is None:
        return 0

    course_ids = [c for c in course_ids if c]
    journey_ids = [j for j in journey_ids if j]
    if not course_ids and not journey_ids:
        return 0

    deleted, _ = cart.items.filter(
        Q(course_id__in=course_ids) | Q(journey_id__in=journey_ids)
    ).delete()
    return deleted
