"""Directory of Dutch IKEA stores that publish Tweedekansje offers."""
from __future__ import annotations

from typing import Optional

from .models import Store

STORES: dict[str, Store] = {
    store.store_id: store
    for store in (
        Store("415", "Amersfoort", "Euroweg 101, 3825 HA Amersfoort, Netherlands", 52.1901, 5.4171),
        Store("088", "Amsterdam", "Hullenbergweg 2, 1101 BL Amsterdam-Zuidoost, Netherlands", 52.3007, 4.9475),
        Store("274", "Barendrecht", "Kolding 1, 2993 LD Barendrecht, Netherlands", 51.8703, 4.5208),
        Store("378", "Haarlem", "Laan van Decima 1, 2031 CX Haarlem, Netherlands", 52.3896, 4.6515),
        Store("403", "Breda", "Sijltsstraat 1, 4814 DC Breda, Netherlands", 51.5963, 4.7364),
        Store("151", "Delft", "Olof Palmestraat 1, 2616 LN Delft, Netherlands", 52.0083, 4.3675),
        Store("272", "Duiven", "Nieuwgraaf 320, 6921 RJ Duiven, Netherlands", 51.9579, 6.0144),
        Store("087", "Eindhoven", "Ekkersrijt 4089, 5692 DB Son, Netherlands", 51.4951, 5.4623),
        Store("404", "Groningen", "Sontweg 9, 9723 AT Groningen, Netherlands", 53.2175, 6.5922),
        Store("089", "Heerlen", "In de Cramer 142, 6412 PM Heerlen, Netherlands", 50.9005, 5.9373),
        Store("312", "Hengelo", "Hasseler Es 2, 7559 DD Hengelo, Netherlands", 52.2824, 6.7958),
        Store("270", "Utrecht", "Winthontlaan 2, 3526 KV Utrecht, Netherlands", 52.0827, 5.1004),
        Store("391", "Zwolle", "Grote Voort 2, 8041 AM Zwolle, Netherlands", 52.5238, 6.1141),
    )
}

STORE_LIST: list[dict[str, str]] = [{"id": store.store_id, "name": store.name} for store in STORES.values()]


def get_store(store_id: str) -> Optional[Store]:
    return STORES.get(store_id)
