"""Tests for line item matching"""
from shopcart.cart.matcher import consolidate, find_matching, matches
from shopcart.cart.models import AddItemRequest


def test_same_configuration_matches(make_item):
    a = make_item(variant_id="v1", color="Red", size="M")
    b = make_item(variant_id="v1", color="Red", size="M", quantity=4)

    assert matches(a, b)


def test_missing_variant_is_not_a_wildcard(make_item):
    """None only matches None"""
    plain = make_item(variant_id=None)
    with_variant = make_item(variant_id="v1")

    assert not matches(plain, with_variant)
    assert not matches(with_variant, plain)


def test_color_and_size_are_compared(make_item):
    red = make_item(color="Red", size="M")

    assert not matches(red, make_item(color="Blue", size="M"))
    assert not matches(red, make_item(color="Red", size="L"))
    assert not matches(red, make_item(color="Red", size=None))


def test_different_products_do_not_match(make_item):
    assert not matches(make_item(product_id="prod-a"), make_item(product_id="prod-b"))


def test_find_matching_accepts_request(make_item):
    items = [make_item(product_id="prod-a"), make_item(product_id="prod-b", item_id="b")]
    request = AddItemRequest(product_id="prod-b", quantity=2)

    assert find_matching(items, request).id == "b"
    assert find_matching(items, AddItemRequest(product_id="prod-c")) is None


def test_consolidate_sums_duplicates_into_first(make_item):
    first = make_item(product_id="prod-a", quantity=2, item_id="first")
    other = make_item(product_id="prod-b", quantity=1)
    duplicate = make_item(product_id="prod-a", quantity=3, item_id="dup")

    result = consolidate([first, other, duplicate], max_quantity=99)

    assert [item.id for item in result] == ["first", other.id]
    assert result[0].quantity == 5
    assert result[0].total_price == result[0].unit_price * 5


def test_consolidate_caps_quantity(make_item):
    result = consolidate(
        [make_item(quantity=60), make_item(quantity=60)],
        max_quantity=99,
    )

    assert len(result) == 1
    assert result[0].quantity == 99
