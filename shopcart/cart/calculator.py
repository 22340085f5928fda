"""Cart Calculator.

Pure functions deriving a CartSummary from a list of line items:
no I/O, no clock, same output for the same items and policy.

Calculation order:
1. subtotal = sum of item totals (unit price snapshot x quantity)
2. discount = sum of product price x discount % x quantity
3. tax = (subtotal - discount) x tax rate
4. shipping = free at or above the threshold, flat fee otherwise
5. total = subtotal - discount + tax + shipping

Amounts are kept unrounded until the summary is built.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from shopcart.config import DEFAULT_PRICING, PricingPolicy
from shopcart.services.money import multiply, percent, round_money, subtract

from .models import Cart, CartSummary, LineItem


@dataclass(frozen=True)
class DiscountCalculation:
    discount_amount: Decimal
    applicable_items: list[str] = field(default_factory=list)
    discount_type: str = "PERCENTAGE"
    coupon_code: Optional[str] = None


@dataclass(frozen=True)
class TaxCalculation:
    tax_rate: Decimal
    tax_amount: Decimal
    taxable_amount: Decimal


@dataclass(frozen=True)
class ShippingCalculation:
    shipping_cost: Decimal
    free_shipping_threshold: Decimal


@dataclass(frozen=True)
class CartCalculation:
    """Detailed breakdown behind a CartSummary."""
    subtotal: Decimal
    discount: DiscountCalculation
    tax: TaxCalculation
    shipping: ShippingCalculation
    total: Decimal
    currency: str


def item_discount(item: LineItem) -> Decimal:
    """Discount for one line, based on the undiscounted product price."""
    discount_percentage = item.product.discount_percentage
    if discount_percentage is None or discount_percentage <= 0:
        return Decimal("0")
    return multiply(percent(item.product.price, discount_percentage), item.quantity)


def shipping_cost(subtotal: Decimal, item_count: int, policy: PricingPolicy) -> Decimal:
    if item_count == 0 or subtotal >= policy.free_shipping_threshold:
        return Decimal("0")
    return policy.flat_shipping_cost


def calculate_breakdown(
    items: Sequence[LineItem], policy: PricingPolicy = DEFAULT_PRICING
) -> CartCalculation:
    subtotal = sum((item.total_price for item in items), Decimal("0"))

    discount_amount = Decimal("0")
    discounted_ids = []
    for item in items:
        line_discount = item_discount(item)
        if line_discount > 0:
            discount_amount += line_discount
            discounted_ids.append(item.id)

    taxable_amount = subtract(subtotal, discount_amount)
    tax_amount = round_money(multiply(taxable_amount, policy.tax_rate))
    shipping = shipping_cost(subtotal, len(items), policy)

    rounded_subtotal = round_money(subtotal)
    rounded_discount = round_money(discount_amount)
    rounded_shipping = round_money(shipping)
    total = round_money(rounded_subtotal - rounded_discount + tax_amount + rounded_shipping)

    return CartCalculation(
        subtotal=rounded_subtotal,
        discount=DiscountCalculation(discount_amount=rounded_discount, applicable_items=discounted_ids),
        tax=TaxCalculation(
            tax_rate=policy.tax_rate,
            tax_amount=tax_amount,
            taxable_amount=round_money(taxable_amount),
        ),
        shipping=ShippingCalculation(
            shipping_cost=rounded_shipping,
            free_shipping_threshold=policy.free_shipping_threshold,
        ),
        total=total,
        currency=policy.currency,
    )


def calculate_summary(
    items: Sequence[LineItem], policy: PricingPolicy = DEFAULT_PRICING
) -> CartSummary:
    """Summary for the given items."""
    breakdown = calculate_breakdown(items, policy)
    return CartSummary(
        item_count=len(items),
        total_quantity=sum(item.quantity for item in items),
        subtotal=breakdown.subtotal,
        discount_amount=breakdown.discount.discount_amount,
        tax_amount=breakdown.tax.tax_amount,
        shipping_cost=breakdown.shipping.shipping_cost,
        total_amount=breakdown.total,
        currency=breakdown.currency,
    )


def recompute(cart: Cart, items: Iterable[LineItem], policy: PricingPolicy = DEFAULT_PRICING) -> Cart:
    """New cart snapshot holding `items` with a summary derived from them."""
    items = list(items)
    return cart.with_items(items, calculate_summary(items, policy))
