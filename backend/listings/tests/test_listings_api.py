from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from listings.models import PromoCode

pytestmark = pytest.mark.django_db


def quote_url(listing_id) -> str:
    return f"/api/listings/{listing_id}/quote/"


def test_listing_detail_is_public(listing):
    resp = APIClient().get(f"/api/listings/{listing.pk}/")

    assert resp.status_code == 200
    assert resp.data["title"] == listing.title
    assert resp.data["pricing_mode"] == "PER_DAY"


def test_inactive_listings_are_hidden(listing_factory):
    hidden = listing_factory(is_active=False)

    assert APIClient().get(f"/api/listings/{hidden.pk}/").status_code == 404
    assert APIClient().get("/api/listings/").data == []


def test_quote(listing_factory):
    listing = listing_factory(weekly_discount=Decimal("15"))
    PromoCode.objects.create(code="TENOFF", percent_off=Decimal("10"))

    resp = APIClient().post(
        quote_url(listing.pk),
        {
            "start_at": "2023-01-01T10:00:00Z",
            "end_at": "2023-01-08T10:00:00Z",
            "promo_code": "tenoff",
        },
        format="json",
    )

    assert resp.status_code == 200, resp.data
    assert resp.data["base_price"] == "700.00"
    assert resp.data["subtotal"] == "535.50"
    assert resp.data["platform_fee"] == "80.33"
    assert resp.data["service_fee"] == "26.78"
    assert resp.data["total"] == "562.28"
    assert [line["type"] for line in resp.data["discounts"]] == ["weekly", "promo"]


def test_quote_errors(listing):
    client = APIClient()
    period = {"start_at": "2023-01-01T10:00:00Z", "end_at": "2023-01-02T10:00:00Z"}

    missing = client.post(quote_url(999999), period, format="json")
    bad_promo = client.post(quote_url(listing.pk), {**period, "promo_code": "NOPE"}, format="json")
    no_insurance = client.post(quote_url(listing.pk), {**period, "wants_insurance": True}, format="json")
    malformed = client.post(quote_url(listing.pk), {"start_at": "soon"}, format="json")

    assert missing.status_code == 404
    assert bad_promo.status_code == 400
    assert "promo_code" in bad_promo.data
    assert no_insurance.status_code == 400
    assert malformed.status_code == 400
