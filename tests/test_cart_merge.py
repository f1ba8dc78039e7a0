from storefront.domain.cart import CartLine
from storefront.services.cart_merge import merge, merge_line, normalize


def line(product_id=1, size="M", color="black", quantity=1, **kwargs):
    return CartLine(product_id=product_id, size=size, color=color, quantity=quantity, **kwargs)


def quantities(result):
    return {l.line_id: l.quantity for l in result.lines}


class TestMerge:
    def test_same_identity_is_summed(self):
        result = merge([line(quantity=2)], [line(quantity=3)])
        assert quantities(result) == {"1:M:black": 5}

    def test_new_identity_is_appended(self):
        result = merge([line()], [line(size="L")])
        assert [l.line_id for l in result.lines] == ["1:M:black", "1:L:black"]

    def test_sum_is_clamped_to_cap(self):
        result = merge([line(quantity=15)], [line(quantity=10)], cap=20)

        assert quantities(result) == {"1:M:black": 20}
        assert len(result.clamped) == 1
        assert result.clamped[0].requested == 25
        assert result.clamped[0].applied == 20

    def test_incoming_duplicates_are_summed_first(self):
        a = merge([line(quantity=1)], [line(quantity=2), line(color="white"), line(quantity=4)])
        b = merge([line(quantity=1)], [line(quantity=4), line(quantity=2), line(color="white")])

        assert quantities(a) == quantities(b) == {"1:M:black": 7, "1:M:white": 1}

    def test_base_snapshot_is_not_modified(self):
        base = (line(quantity=2),)
        merge(base, [line(quantity=3)])
        merge(base, [line(quantity=3)])
        assert base[0].quantity == 2

    def test_base_keeps_variant_snapshot(self):
        result = merge([line(quantity=1, variant_id=9, available_stock=4)], [line(quantity=1)])
        assert result.lines[0].variant_id == 9
        assert result.lines[0].available_stock == 4

    def test_empty_incoming_returns_base(self):
        result = merge([line(quantity=2)], [])
        assert quantities(result) == {"1:M:black": 2}
        assert result.clamped == ()

    def test_merging_a_merged_result_again_sums_again(self):
        a = [line(quantity=1)]
        b = [line(quantity=2), line(size="L")]

        again = merge(a, merge(a, b).lines)

        # a plain sum; replays of the same guest cart are filtered by the cart (absorbed ids)
        assert quantities(again) == {"1:M:black": 4, "1:L:black": 1}

    def test_repeated_merge_never_exceeds_cap(self):
        a = [line(quantity=8)]
        b = [line(quantity=8)]

        again = merge(a, merge(a, b, cap=10).lines, cap=10)

        assert quantities(again) == {"1:M:black": 10}


class TestMergeLine:
    def test_find_or_append(self):
        assert quantities(merge_line([line(quantity=1)], line(quantity=1))) == {"1:M:black": 2}
        assert quantities(merge_line([], line(quantity=1))) == {"1:M:black": 1}


class TestNormalize:
    def test_collapses_and_caps(self):
        result = normalize([line(quantity=12), line(quantity=12), line(size="S")], cap=20)
        assert quantities(result) == {"1:M:black": 20, "1:S:black": 1}
