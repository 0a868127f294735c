import itertools

import pytest

from shopscan.core.errors import PreconditionViolation
from shopscan.core.merger import merge_records
from shopscan.schemas.products import ImageRef, ProductIdentifier, SourceRecord, SuggestedPrice

PRIORITY = ["upc_database", "barcode_lookup", "open_food_facts"]


def _records():
    return [
        SourceRecord(
            source_tag="open_food_facts",
            name="Acme Super Widget 500g Family Pack",
            brand="Acme Foods",
            category="Snacks",
            description="Wheat, sugar",
            images=[ImageRef(url="https://img/off.jpg", is_primary=True)],
            identifiers=[ProductIdentifier(type="barcode", value="012345678905")],
        ),
        SourceRecord(
            source_tag="upc_database",
            name="Acme Widget",
            brand="Acme",
            description="The classic Acme widget, now with more crunch.",
            images=[ImageRef(url="https://img/upc.jpg", is_primary=True)],
            identifiers=[
                ProductIdentifier(type="upc", value="012345678905"),
                ProductIdentifier(type="ean", value="0012345678905"),
            ],
        ),
        SourceRecord(
            source_tag="barcode_lookup",
            category="Food > Snacks",
            images=[ImageRef(url="https://img/upc.jpg"), ImageRef(url="https://img/bl.jpg")],
            identifiers=[ProductIdentifier(type="upc", value="012345678905")],
            suggested_price=SuggestedPrice(current=3.49, store="Walmart"),
        ),
    ]


class TestFieldRules:
    def setup_method(self):
        self.product = merge_records(_records(), PRIORITY)

    def test_longest_name_and_description(self):
        assert self.product.name == "Acme Super Widget 500g Family Pack"
        assert self.product.description == "The classic Acme widget, now with more crunch."

    def test_brand_and_category_are_first_wins_in_priority_order(self):
        # upc_database outranks open_food_facts even though its brand is shorter
        assert self.product.brand == "Acme"
        # upc_database has no category; barcode_lookup is next
        assert self.product.category == "Food > Snacks"

    def test_suggested_price(self):
        assert self.product.suggested_price.current == 3.49

    def test_images_deduped_with_one_primary(self):
        urls = [i.url for i in self.product.images]
        assert urls == ["https://img/upc.jpg", "https://img/bl.jpg", "https://img/off.jpg"]
        assert [i.is_primary for i in self.product.images] == [True, False, False]

    def test_identifier_union(self):
        pairs = {(i.type, i.value) for i in self.product.identifiers}
        assert pairs == {("upc", "012345678905"), ("ean", "0012345678905"), ("barcode", "012345678905")}
        assert len(self.product.identifiers) == 3

    def test_contributing_sources(self):
        assert self.product.contributing_sources == PRIORITY


def test_merge_is_commutative():
    records = _records()
    expected = merge_records(records, PRIORITY)
    for perm in itertools.permutations(records):
        assert merge_records(list(perm), PRIORITY) == expected


def test_duplicate_image_from_two_sources_keeps_one_primary():
    a = SourceRecord(source_tag="a", images=[ImageRef(url="x.jpg")])
    b = SourceRecord(source_tag="b", images=[ImageRef(url="x.jpg", is_primary=True), ImageRef(url="y.jpg")])

    for records in ([a, b], [b, a]):
        product = merge_records(records, ["a", "b"])
        assert sorted(i.url for i in product.images) == ["x.jpg", "y.jpg"]
        assert sum(i.is_primary for i in product.images) == 1


def test_first_image_becomes_primary_when_none_marked():
    a = SourceRecord(source_tag="a", images=[ImageRef(url="1.jpg"), ImageRef(url="2.jpg")])
    product = merge_records([a], ["a"])
    assert [i.is_primary for i in product.images] == [True, False]


def test_name_tie_goes_to_higher_priority_source():
    a = SourceRecord(source_tag="a", name="Widget A")
    b = SourceRecord(source_tag="b", name="Widget B")
    assert merge_records([b, a], ["a", "b"]).name == "Widget A"
    assert merge_records([a, b], ["b", "a"]).name == "Widget B"


def test_unknown_sources_rank_after_configured_ones():
    known = SourceRecord(source_tag="upc_database", brand="Known")
    unknown = SourceRecord(source_tag="zzz_other", brand="Other")
    assert merge_records([unknown, known], PRIORITY).brand == "Known"


def test_empty_record_does_not_contribute():
    full = SourceRecord(source_tag="a", name="Widget")
    empty = SourceRecord(source_tag="b", name="  ")
    assert merge_records([full, empty], ["a", "b"]).contributing_sources == ["a"]


def test_merging_nothing_is_a_precondition_violation():
    with pytest.raises(PreconditionViolation):
        merge_records([], PRIORITY)
