import json
from urllib.parse import quote, unquote

from storefront.domain.cart import Cart, CartLine
from storefront.domain.cookie import parse_cookie_cart, serialize_cookie_cart


class TestCookieCart:
    def test_wire_format(self):
        cart = Cart(id="abc", lines=(CartLine(1, "M", "black", 2, variant_id=4),))

        payload = json.loads(unquote(serialize_cookie_cart(cart)))

        assert payload == {"id": "abc", "items": [{"productId": 1, "size": "M", "color": "black", "quantity": 2}]}

    def test_parse(self):
        raw = json.dumps({"id": "abc", "items": [{"productId": 2, "size": "L", "color": "blue", "quantity": 1}]})

        cart = parse_cookie_cart(quote(raw))

        assert cart.id == "abc"
        assert cart.is_ephemeral
        assert cart.lines[0].line_id == "2:L:blue"

    def test_missing_cookie(self):
        assert parse_cookie_cart(None) is None
        assert parse_cookie_cart("") is None

    def test_malformed_cookie_is_treated_as_absent(self):
        assert parse_cookie_cart("{not json") is None
        assert parse_cookie_cart(json.dumps({"items": []})) is None
        assert parse_cookie_cart(json.dumps({"id": "x", "items": [{"productId": 1, "quantity": -1}]})) is None

    def test_unencoded_json_is_accepted(self):
        raw = json.dumps({"id": "abc", "items": []})
        assert parse_cookie_cart(raw).id == "abc"

    def test_value_is_cookie_safe(self):
        value = serialize_cookie_cart(Cart(id="abc", lines=(CartLine(1, "M", "black", 2),)))
        assert not set(value) & set('",; {}')
