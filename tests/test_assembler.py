"""Tests for CRM field coercion and the view assembler.

Covers numeric and flag coercion, record mapping, the per-item total rule,
deal amount fallback, the 120-day proposed expiration, and verbiage parsing.
"""

from __future__ import annotations

from datetime import date

import pytest

from src.sketch_review.deals.assembler import (
    EXPIRATION_WINDOW_DAYS,
    assemble_deal_view,
    assemble_po_quote_view,
    assemble_po_review_view,
    compute_total,
    parse_verbiage,
    proposed_expiration,
)
from src.sketch_review.deals.field_mapping import (
    contact_from_record,
    edge_from_result,
    is_flag_set,
    line_item_from_record,
    to_float,
    to_int,
)
from src.sketch_review.deals.schemas import (
    ContactRole,
    ContactRoles,
    ContactSummary,
    DescribedLineItem,
    LineItem,
    QuoteSummary,
)


# ── Coercion ────────────────────────────────────────────────────────────────


class TestCoercion:
    @pytest.mark.parametrize(
        "value, expected",
        [("12.5", 12.5), ("12.5 USD", 12.5), ("7", 7.0), (3, 3.0), ("-4.25", -4.25)],
    )
    def test_to_float_parses_leading_number(self, value, expected):
        assert to_float(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "0", "0.0"])
    def test_to_float_falls_back_on_zero_or_garbage(self, value):
        assert to_float(value, 99) == 99

    @pytest.mark.parametrize("value, expected", [("2", 2), ("2.7", 2), ("3 units", 3)])
    def test_to_int_parses_leading_integer(self, value, expected):
        assert to_int(value) == expected

    @pytest.mark.parametrize("value", [None, "", "x", "0"])
    def test_to_int_defaults_quantity_to_one(self, value):
        assert to_int(value) == 1

    @pytest.mark.parametrize(
        "value, expected",
        [("true", True), ("Yes", True), ("yes", False), ("TRUE", False), ("false", False), (None, False)],
    )
    def test_flag_matches_exact_strings(self, value, expected):
        assert is_flag_set(value) is expected


# ── Record Mapping ──────────────────────────────────────────────────────────


class TestRecordMapping:
    def test_line_item_defaults(self):
        """Missing name, price, quantity and amount take their defaults."""
        item = line_item_from_record({"id": "1", "properties": {}})
        assert item == LineItem(id="1", name="Item", price=0, quantity=1, amount=0)

    def test_line_item_with_description(self):
        item = line_item_from_record(
            {"id": "1", "properties": {"name": "Hoodie", "description": "Navy"}},
            with_description=True,
        )
        assert isinstance(item, DescribedLineItem)
        assert item.description == "Navy"

    def test_contact_name_skips_missing_parts(self):
        contact = contact_from_record({"id": "5", "properties": {"firstname": "Ada", "email": "a@x.io"}})
        assert contact.name == "Ada"
        assert contact.email == "a@x.io"

    def test_edge_roles_derived_from_labels(self):
        edge = edge_from_result(
            {
                "toObjectId": 301,
                "associationTypes": [
                    {"label": None},
                    {"label": "Payer"},
                    {"label": "Primary Contact"},
                ],
            }
        )
        assert edge.to_object_id == "301"
        assert edge.roles == {ContactRole.PAYER, ContactRole.PRIMARY_CONTACT}

    def test_edge_without_known_label_is_unlabeled(self):
        edge = edge_from_result({"toObjectId": 1, "associationTypes": [{"label": "Billing"}]})
        assert edge.roles == {ContactRole.UNLABELED}
        assert edge.labels == ["Billing"]


# ── Totals ──────────────────────────────────────────────────────────────────


class TestTotals:
    def test_total_uses_amount_or_price_times_quantity(self):
        """[{10 x 2, amount 0}, {5 x 1, amount 7}] totals 27."""
        items = [
            LineItem(id="1", price=10, quantity=2, amount=0),
            LineItem(id="2", price=5, quantity=1, amount=7),
        ]
        assert compute_total(items) == 27
        assert compute_total(list(reversed(items))) == 27

    def test_empty_total_is_zero(self):
        assert compute_total([]) == 0

    def test_deal_amount_falls_back_to_total(self):
        view = assemble_deal_view(
            {"id": "1", "properties": {"dealname": "Order", "amount": ""}},
            [DescribedLineItem(id="1", price=4, quantity=3)],
        )
        assert view.amount == 12
        assert view.total == 12

    def test_deal_amount_prefers_own_amount(self):
        view = assemble_deal_view(
            {"id": "1", "properties": {"amount": "500"}},
            [DescribedLineItem(id="1", price=4, quantity=3)],
        )
        assert view.amount == 500
        assert view.deal_name == "Your Order"


# ── Expiration and Verbiage ─────────────────────────────────────────────────


class TestExpirationAndVerbiage:
    def test_expiration_is_120_days_out(self):
        assert EXPIRATION_WINDOW_DAYS == 120
        assert proposed_expiration(date(2024, 1, 1)) == "2024-04-30"

    def test_expiration_defaults_to_today(self):
        assert len(proposed_expiration()) == len("YYYY-MM-DD")

    def test_verbiage_parses_json_object(self):
        assert parse_verbiage('{"intro": "Hello"}') == {"intro": "Hello"}

    @pytest.mark.parametrize("raw", [None, "", "{not json", "[1, 2]", '"text"'])
    def test_invalid_verbiage_yields_empty_object(self, raw):
        assert parse_verbiage(raw) == {}


# ── Views ───────────────────────────────────────────────────────────────────


class TestViews:
    def test_po_quote_view_po_fields(self):
        deal = {
            "id": "77",
            "properties": {
                "dealname": "Team Jackets",
                "is_po_customer": "true",
                "po_quote_title": "Jacket Quote",
                "po_team_size": "0",
                "sketch_public_url": "https://sketch.test/77",
            },
        }
        view = assemble_po_quote_view(
            deal,
            [LineItem(id="1", price=20, quantity=5)],
            QuoteSummary(id="q1", title="Q"),
            ContactSummary(id="c1", name="Ada"),
        )
        assert view.po_fields.is_po_customer is True
        assert view.po_fields.title == "Jacket Quote"
        assert view.po_fields.team_size is None
        assert view.total == 100
        assert view.sketch_url == "https://sketch.test/77"

    def test_po_quote_view_serializes_camel_case(self):
        view = assemble_po_quote_view({"id": "1", "properties": {}}, [], None, None)
        body = view.model_dump(by_alias=True)
        assert {"dealId", "dealName", "lineItems", "existingQuote", "primaryContact", "poFields"} <= set(body)
        assert body["poFields"]["isPoCustomer"] is False

    def test_review_view_carries_contacts_and_verbiage(self):
        payer = ContactSummary(id="3", name="Pat Payer", email="pat@x.io")
        primary = ContactSummary(id="2", name="Pri Mary", email="pri@x.io")
        view = assemble_po_review_view(
            {
                "id": "9",
                "properties": {
                    "dealname": "Caps",
                    "po_quote_verbiage": '{"terms": "Net 30"}',
                    "po_quote_status": "Sent",
                },
            },
            [],
            ContactRoles(payer=payer, primary=primary),
            today=date(2024, 1, 1),
        )
        assert view.payer_contact == payer
        assert view.primary_contact == primary
        assert view.verbiage == {"terms": "Net 30"}
        assert view.expiration_date == "2024-04-30"
        assert view.po_quote_status == "Sent"
        assert view.po_document_url is None
