"""Item normalisation and pricing."""

from dataclasses import dataclass
from decimal import Decimal

from .errors import UnknownMenuItemError
from .models import OrderItemInput, PricedItem, to_money


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    price: Decimal


def _entry(name: str, price: str) -> CatalogEntry:
    return CatalogEntry(name=name, price=Decimal(price))


# Platform-wide demo catalog, used when a vendor menu has no entry for an item
DEFAULT_CATALOG: dict[str, CatalogEntry] = {
    "m1": _entry("Margherita", "9.50"),
    "m2": _entry("Quattro Formaggi", "12.50"),
    "m3": _entry("Tiramisu", "6.50"),
    "m4": _entry("Salmon Maki (8st)", "8.95"),
    "m5": _entry("Spicy Tuna Roll", "11.95"),
    "m6": _entry("Gyoza (6st)", "6.75"),
    "m7": _entry("Chicken Teriyaki Bowl", "10.95"),
    "m8": _entry("Vegan Power Bowl", "11.95"),
    "m9": _entry("Pasta Bolognese", "10.95"),
    "m10": _entry("Panna Cotta", "5.95"),
    "m11": _entry("Cheeseburger", "9.95"),
    "m12": _entry("Sweet Potato Fries", "4.95"),
    "m13": _entry("Pad Thai", "10.95"),
    "m14": _entry("Springrolls (3st)", "6.50"),
    "m15": _entry("Pizza Pepperoni", "11.50"),
    "m16": _entry("Lasagne", "12.00"),
    "m17": _entry("California Roll", "9.95"),
    "m18": _entry("Ebi Tempura", "10.95"),
    "m19": _entry("Falafel Bowl", "10.50"),
    "m20": _entry("Salmon Poke Bowl", "12.50"),
    "m21": _entry("Asian Beef Bowl", "12.95"),
    "m22": _entry("Pasta Carbonara", "11.50"),
    "m23": _entry("Bruschetta", "5.50"),
    "m24": _entry("Insalata Caprese", "7.95"),
    "m25": _entry("BBQ Bacon Burger", "11.50"),
    "m26": _entry("Veggie Burger", "9.50"),
    "m27": _entry("Onion Rings", "5.50"),
    "m28": _entry("Beef Black Pepper", "11.95"),
    "m29": _entry("Chicken Cashew", "11.50"),
    "m30": _entry("Vegetable Wok", "9.95"),
    "m31": _entry("Taco Carne Asada", "8.50"),
    "m32": _entry("Taco Pollo", "8.00"),
    "m33": _entry("Nachos Supreme", "9.50"),
    "m34": _entry("Quesadilla", "9.00"),
    "m35": _entry("Churros", "5.50"),
    "m36": _entry("Vegan Burger", "10.50"),
    "m37": _entry("Jackfruit Wrap", "9.95"),
    "m38": _entry("Rainbow Salad", "8.95"),
    "m39": _entry("Vegan Brownie", "5.50"),
    "m40": _entry("Smoothie Bowl", "7.50"),
}


def normalize_items(items: list[OrderItemInput]) -> list[OrderItemInput]:
    """Coerce IDs to strings and quantities to at least 1."""
    normalized = []
    for item in items:
        try:
            qty = int(item.qty)
        except (TypeError, ValueError):
            qty = 1
        normalized.append(OrderItemInput(id=str(item.id), qty=max(1, qty)))
    return normalized


def price_items(
    items: list[OrderItemInput],
    menu: dict[str, CatalogEntry],
    fallback: dict[str, CatalogEntry] | None = None,
) -> list[PricedItem]:
    """
    Resolve name and unit price for each requested item.

    The vendor's own menu wins; the fallback catalog covers items the menu
    doesn't list.

    Raises:
        UnknownMenuItemError: If an item is in neither the menu nor the fallback.
    """
    fallback = DEFAULT_CATALOG if fallback is None else fallback
    priced = []
    for item in normalize_items(items):
        entry = menu.get(item.id) or fallback.get(item.id)
        if entry is None:
            raise UnknownMenuItemError(item.id)
        priced.append(
            PricedItem(id=item.id, name=entry.name, qty=item.qty, price=to_money(entry.price))
        )
    return priced
