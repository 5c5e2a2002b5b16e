from __future__ import annotations

from typing import Any

import pytest
import requests

from tweedekansje_alert.api.client import IkeaCatalogClient
from tweedekansje_alert.config import CatalogConfig


@pytest.fixture
def client() -> IkeaCatalogClient:
    return IkeaCatalogClient(CatalogConfig(search_url="https://offers.example.com/search"))


def _entry(code: str, offers: list[dict[str, Any]] | None = None, **extra: Any) -> dict[str, Any]:
    entry: dict[str, Any] = {"articleNumbers": [code], "storeId": "088", "title": f"Product {code}"}
    if offers is not None:
        entry["offers"] = offers
    entry.update(extra)
    return entry


def test_fetch_store_catalog_pages_until_total_pages(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    pages = {
        0: {"content": [_entry("11111111", [{"offerNumber": "A1", "price": 10}])], "totalPages": 2},
        1: {"content": [_entry("22222222", [{"offerNumber": "B1", "price": 20}])], "totalPages": 2},
    }
    requested: list[dict[str, Any]] = []

    def fake_get(url: str, headers=None, params=None, timeout=None):
        requested.append(params)
        return fake_response(pages[params["page"]])

    monkeypatch.setattr(requests, "get", fake_get)

    items = client.fetch_store_catalog("088")

    assert [item.item_id for item in items] == ["A1", "B1"]
    assert [params["page"] for params in requested] == [0, 1]
    assert requested[0]["storeIds"] == "088"
    assert requested[0]["size"] == 100
    assert requested[0]["languageCode"] == "nl"


def test_fetch_store_catalog_stops_on_empty_page(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    calls: list[int] = []

    def fake_get(url: str, headers=None, params=None, timeout=None):
        calls.append(params["page"])
        if params["page"] == 0:
            return fake_response({"content": [_entry("11111111")]})
        return fake_response({"content": []})

    monkeypatch.setattr(requests, "get", fake_get)

    items = client.fetch_store_catalog("088")

    assert len(items) == 1
    assert calls == [0, 1]


def test_http_error_on_later_page_keeps_earlier_items(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    def fake_get(url: str, headers=None, params=None, timeout=None):
        page = params["page"]
        if page == 2:
            return fake_response({"error": "boom"}, status_code=502)
        return fake_response({"content": [_entry(f"1000000{page}", [{"offerNumber": f"O{page}"}])], "totalPages": 5})

    monkeypatch.setattr(requests, "get", fake_get)

    items = client.fetch_store_catalog("088")

    assert [item.item_id for item in items] == ["O0", "O1"]


def test_unreachable_provider_returns_empty_list(monkeypatch: pytest.MonkeyPatch, client) -> None:
    def fake_get(url: str, headers=None, params=None, timeout=None):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(requests, "get", fake_get)

    assert client.fetch_store_catalog("088") == []


def test_invalid_json_is_treated_as_failure(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: fake_response(ValueError("not json")))

    assert client.fetch_store_catalog("088") == []


def test_page_ceiling_bounds_a_looping_provider(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    calls: list[int] = []

    def fake_get(url: str, headers=None, params=None, timeout=None):
        calls.append(params["page"])
        return fake_response({"content": [_entry("11111111", [{"offerNumber": f"X{params['page']}"}])]})

    monkeypatch.setattr(requests, "get", fake_get)

    items = client.fetch_store_catalog("088")

    assert len(calls) == 20
    assert len(items) == 20


def test_offers_expand_into_items_with_synthesized_ids(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    payload = {
        "content": [
            _entry("50487857", [{"offerNumber": "N-1", "price": 15}, {"id": 991, "price": 12}, {"price": 9}]),
            _entry("30563951"),
            {"title": "Zonder code"},
        ],
        "totalPages": 1,
    }
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: fake_response(payload))

    items = client.fetch_store_catalog("270")

    assert [item.item_id for item in items] == ["N-1", "991", "50487857-0-0-2", "30563951-0-1-0", "270-0-2-0"]
    assert items[0].article_numbers == ["50487857"]
    assert items[1].offer_id == 991
    assert items[4].store_id == "270"
    assert items[3].store_id == "088"



def test_entries_sharing_a_code_get_distinct_ids(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    pages = {
        0: {"content": [_entry("11111111"), _entry("11111111", [{"price": 5}])], "totalPages": 2},
        1: {"content": [_entry("11111111"), {"title": "Zonder code"}, {"title": "Ook zonder code"}], "totalPages": 2},
    }
    monkeypatch.setattr(requests, "get", lambda url, params=None, **kwargs: fake_response(pages[params["page"]]))

    ids = [item.item_id for item in client.fetch_store_catalog("088")]

    assert ids == ["11111111-0-0-0", "11111111-0-1-0", "11111111-1-0-0", "088-1-1-0", "088-1-2-0"]
    assert len(set(ids)) == len(ids)

def test_price_and_original_price_fallbacks(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    payload = {
        "content": [
            _entry("11111111", [{"offerNumber": "a", "price": 10}], minPrice=8, maxPrice=12, originalPrice=50),
            _entry("22222222", [{"offerNumber": "b"}], minPrice=8, maxPrice=12),
            _entry("33333333", [{"offerNumber": "c"}], originalPrice=40),
            _entry("44444444", [{"offerNumber": "d"}]),
            _entry("55555555", [{"offerNumber": "e", "price": 7}]),
        ],
        "totalPages": 1,
    }
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: fake_response(payload))

    items = {item.item_id: item for item in client.fetch_store_catalog("088")}

    assert items["a"].price == 10 and items["a"].original_price == 50
    assert items["b"].price == 8 and items["b"].original_price == 12
    assert items["c"].price == 40 and items["c"].original_price == 40
    assert items["d"].price == 0.0 and items["d"].original_price is None
    assert items["e"].price == 7 and items["e"].original_price == 7


def test_name_and_image_fallbacks(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    payload = {
        "content": [
            {"articleNumbers": ["11111111"], "offers": [{"offerNumber": "a", "description": "Licht beschadigd"}],
             "media": [{"url": "https://img.example.com/1.jpg", "type": "image"}]},
            {"articleNumbers": ["22222222"], "heroImage": "https://img.example.com/hero.jpg"},
        ],
        "totalPages": 1,
    }
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: fake_response(payload))

    first, second = client.fetch_store_catalog("088")

    assert first.name == "Licht beschadigd"
    assert first.image_url == "https://img.example.com/1.jpg"
    assert second.name == "Onbekend product"
    assert second.image_url == "https://img.example.com/hero.jpg"


def test_verify_article_exists_tries_second_url_after_404(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    urls: list[str] = []

    def fake_get(url: str, headers=None, timeout=None):
        urls.append(url)
        if "/s50487857.json" in url:
            return fake_response(None, status_code=404)
        return fake_response({"name": "BILLY"})

    monkeypatch.setattr(requests, "get", fake_get)

    assert client.verify_article_exists("504.878.57") is True
    assert urls == [
        "https://www.ikea.com/nl/nl/products/857/s50487857.json",
        "https://www.ikea.com/nl/nl/products/857/50487857.json",
    ]


def test_verify_article_exists_rejects_bad_codes_without_requests(monkeypatch: pytest.MonkeyPatch, client) -> None:
    def fake_get(*args, **kwargs):  # pragma: no cover - must not be called
        raise AssertionError("unexpected request")

    monkeypatch.setattr(requests, "get", fake_get)

    assert client.verify_article_exists("1234") is False


def test_verify_article_exists_gives_up_on_server_error(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: fake_response(None, status_code=500))

    assert client.verify_article_exists("50487857") is False


def test_fetch_product_preview_extracts_fields(monkeypatch: pytest.MonkeyPatch, client, fake_response) -> None:
    product = {
        "name": "BILLY",
        "typeName": "Boekenkast",
        "price": "59,00",
        "pipUrl": "https://www.ikea.com/nl/nl/p/billy-50487857/",
        "mainImage": {"url": "https://img.example.com/billy.jpg", "alt": "BILLY"},
    }
    monkeypatch.setattr(requests, "get", lambda *args, **kwargs: fake_response(product))

    preview = client.fetch_product_preview("50487857")

    assert preview is not None
    assert preview.name == "BILLY"
    assert preview.image_url == "https://img.example.com/billy.jpg"
    assert preview.to_dict()["typeName"] == "Boekenkast"
