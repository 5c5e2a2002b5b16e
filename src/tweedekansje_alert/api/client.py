"""Client for the IKEA Tweedekansje (circular offers) API."""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from ..config import CatalogConfig
from ..models import CatalogItem

logger = logging.getLogger(__name__)

UNKNOWN_PRODUCT_NAME = "Onbekend product"


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True)
class CatalogOffer:
    """One concrete offer (condition/price variant) of a catalog entry."""

    offer_id: Optional[int] = None
    offer_number: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CatalogOffer":
        return cls(
            offer_id=_as_int(payload.get("id")),
            offer_number=_as_str(payload.get("offerNumber")),
            description=_as_str(payload.get("description")),
            price=_as_float(payload.get("price")),
        )


@dataclass(slots=True)
class CatalogEntry:
    """A grouped search result as returned by the offer search endpoint.

    The provider omits fields freely, so every attribute is optional and the
    fallback order used to build :class:`CatalogItem` objects lives in
    :meth:`resolve_price` and :meth:`resolve_original_price`.
    """

    article_numbers: list[str] = field(default_factory=list)
    store_id: Optional[str] = None
    title: Optional[str] = None
    hero_image: Optional[str] = None
    media_urls: list[str] = field(default_factory=list)
    original_price: Optional[float] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    offers: list[CatalogOffer] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CatalogEntry":
        raw_numbers = payload.get("articleNumbers")
        article_numbers = [str(number) for number in raw_numbers if number] if isinstance(raw_numbers, list) else []

        media_urls: list[str] = []
        raw_media = payload.get("media")
        if isinstance(raw_media, list):
            for medium in raw_media:
                if isinstance(medium, Mapping) and _as_str(medium.get("url")):
                    media_urls.append(str(medium["url"]))

        offers: list[CatalogOffer] = []
        raw_offers = payload.get("offers")
        if isinstance(raw_offers, list):
            offers = [CatalogOffer.from_payload(offer) for offer in raw_offers if isinstance(offer, Mapping)]

        return cls(
            article_numbers=article_numbers,
            store_id=_as_str(payload.get("storeId")),
            title=_as_str(payload.get("title")),
            hero_image=_as_str(payload.get("heroImage")),
            media_urls=media_urls,
            original_price=_as_float(payload.get("originalPrice")),
            min_price=_as_float(payload.get("minPrice")),
            max_price=_as_float(payload.get("maxPrice")),
            offers=offers,
        )

    @property
    def image_url(self) -> Optional[str]:
        if self.hero_image:
            return self.hero_image
        return self.media_urls[0] if self.media_urls else None

    def resolve_price(self, offer: Optional[CatalogOffer]) -> float:
        for candidate in (
            offer.price if offer else None,
            self.min_price,
            self.max_price,
            self.original_price,
        ):
            if candidate is not None:
                return candidate
        return 0.0

    def resolve_original_price(self, offer: Optional[CatalogOffer]) -> Optional[float]:
        for candidate in (
            self.original_price,
            self.max_price,
            self.min_price,
            offer.price if offer else None,
        ):
            if candidate is not None:
                return candidate
        return None

    def to_items(self, requested_store_id: str, page: int, position: int = 0) -> list[CatalogItem]:
        """Expand the entry into one item per offer (or one item without offers).

        Offers without a number or id get an id built from the entry's page and
        position so that entries sharing an article code stay distinct.
        """

        offers: list[Optional[CatalogOffer]] = list(self.offers) or [None]
        store_id = self.store_id or requested_store_id
        items: list[CatalogItem] = []
        for index, offer in enumerate(offers):
            if offer is not None and offer.offer_number:
                item_id = offer.offer_number
            elif offer is not None and offer.offer_id:
                item_id = str(offer.offer_id)
            elif self.article_numbers:
                item_id = f"{self.article_numbers[0]}-{page}-{position}-{index}"
            else:
                item_id = f"{store_id}-{page}-{position}-{index}"

            name = self.title or (offer.description if offer else None) or UNKNOWN_PRODUCT_NAME
            items.append(
                CatalogItem(
                    item_id=item_id,
                    name=name,
                    price=self.resolve_price(offer),
                    store_id=store_id,
                    article_numbers=list(self.article_numbers),
                    image_url=self.image_url,
                    original_price=self.resolve_original_price(offer),
                    offer_id=offer.offer_id if offer else None,
                    offer_number=offer.offer_number if offer else None,
                )
            )
        return items


@dataclass(slots=True)
class ProductPreview:
    name: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[str] = None
    price_excl_tax: Optional[str] = None
    type_name: Optional[str] = None
    pip_url: Optional[str] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "name": self.name,
            "imageUrl": self.image_url,
            "price": self.price,
            "priceExclTax": self.price_excl_tax,
            "typeName": self.type_name,
            "pipUrl": self.pip_url,
        }


@dataclass(slots=True)
class IkeaCatalogClient:
    """Handles communication with the IKEA Tweedekansje API."""

    config: CatalogConfig = field(default_factory=CatalogConfig)

    def build_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    def build_product_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
            "Referer": "https://www.ikea.com/",
            "X-Client-id": self.config.client_id,
        }

    def fetch_store_catalog(self, store_id: str) -> list[CatalogItem]:
        """Return every current Tweedekansje offer for ``store_id``.

        Pages are requested until the provider returns an empty page, the
        reported ``totalPages`` is reached, or ``max_pages`` pages have been
        read. A failing page ends the fetch for this store and the items read
        so far are returned; this method never raises for network errors.
        """

        items: list[CatalogItem] = []
        page = 0
        while page < self.config.max_pages:
            params: dict[str, Any] = {
                "languageCode": self.config.language_code,
                "size": self.config.page_size,
                "storeIds": store_id,
                "page": page,
            }
            try:
                response = requests.get(
                    self.config.search_url,
                    headers=self.build_headers(),
                    params=params,
                    timeout=self.config.timeout_seconds,
                )
                response.raise_for_status()
                payload = response.json()
            except (requests.RequestException, ValueError) as exc:
                logger.warning("Catalog fetch for store %s stopped at page %s: %s", store_id, page, exc)
                break

            entries = self._extract_entries(payload)
            if not entries:
                break

            for position, entry in enumerate(entries):
                items.extend(entry.to_items(store_id, page, position))

            page += 1
            total_pages = payload.get("totalPages") if isinstance(payload, Mapping) else None
            if isinstance(total_pages, int) and not isinstance(total_pages, bool) and page >= total_pages:
                break
        else:
            logger.warning("Catalog fetch for store %s hit the %s page limit", store_id, self.config.max_pages)

        logger.debug("Fetched %s catalog items for store %s over %s pages", len(items), store_id, page)
        return items

    @staticmethod
    def _extract_entries(payload: Any) -> list[CatalogEntry]:
        if not isinstance(payload, Mapping):
            return []
        content = payload.get("content")
        if not isinstance(content, list):
            return []
        return [CatalogEntry.from_payload(entry) for entry in content if isinstance(entry, Mapping)]

    def product_urls(self, article_number: str) -> list[str]:
        normalized = "".join(ch for ch in article_number if ch.isdigit())
        suffix = normalized[5:]
        if not suffix:
            return []
        base = self.config.product_base_url.rstrip("/")
        return [f"{base}/{suffix}/s{normalized}.json", f"{base}/{suffix}/{normalized}.json"]

    def fetch_product_json(self, article_number: str) -> Optional[Mapping[str, Any]]:
        """Fetch the product document for an article, trying both URL variants.

        A 404 moves on to the next variant; any other failure gives up.
        """

        for url in self.product_urls(article_number):
            try:
                response = requests.get(url, headers=self.build_product_headers(), timeout=self.config.timeout_seconds)
            except requests.RequestException as exc:
                logger.warning("Product lookup for %s failed: %s", article_number, exc)
                return None

            if response.status_code == 404:
                continue
            if not response.ok:
                return None
            try:
                payload = response.json()
            except ValueError:
                return None
            return payload if isinstance(payload, Mapping) else None
        return None

    def verify_article_exists(self, article_number: str) -> bool:
        normalized = "".join(ch for ch in article_number if ch.isdigit())
        if len(normalized) != 8:
            return False
        return self.fetch_product_json(normalized) is not None

    def fetch_product_preview(self, article_number: str) -> Optional[ProductPreview]:
        normalized = "".join(ch for ch in article_number if ch.isdigit())
        if len(normalized) != 8:
            return None

        product = self.fetch_product_json(normalized)
        if product is None:
            return None

        image_url: Optional[str] = None
        for key in ("mainImage", "primaryImage"):
            image = product.get(key)
            if isinstance(image, Mapping) and _as_str(image.get("url")):
                image_url = str(image["url"])
                break
        if image_url is None:
            media = product.get("media")
            if isinstance(media, list) and media and isinstance(media[0], Mapping):
                image_url = _as_str(media[0].get("url"))
        if image_url is None:
            image_url = _as_str(product.get("heroImage"))

        return ProductPreview(
            name=_as_str(product.get("name")),
            image_url=image_url,
            price=_as_str(product.get("price")),
            price_excl_tax=_as_str(product.get("priceExclTax")),
            type_name=_as_str(product.get("typeName")),
            pip_url=_as_str(product.get("pipUrl")),
        )
