"""
Cart store for managing the shopper's selection, persisted after every change.
"""
import hashlib
import logging
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from pydantic import TypeAdapter, ValidationError

from storefront.config import Config
from storefront.models import CartEvent, CartEventKind, CartItem, ItemType
from storefront.storage import KeyValueStorage

logger = logging.getLogger(__name__)

CartListener = Callable[[CartEvent], None]

_cart_items = TypeAdapter(List[CartItem])


class CartStore:
    """
    Ordered collection of cart items, at most one per (id, type).

    Every mutation is written through to storage before subscribers are
    notified. A store instance assumes it is the only writer for its key.
    """

    def __init__(self, storage: KeyValueStorage, storage_key: Optional[str] = None):
        self.storage = storage
        self.storage_key = storage_key or Config.CART_STORAGE_KEY
        self._items: List[CartItem] = []
        self._listeners: List[CartListener] = []
        self.load()

    def _hash_key(self) -> str:
        """Hash storage key for logging (no PII)"""
        return hashlib.sha256(self.storage_key.encode()).hexdigest()[:8]

    @staticmethod
    def _normalize_key(item_id: Union[str, int], item_type: Union[ItemType, str]) -> Tuple[str, ItemType]:
        return str(item_id), ItemType(item_type)

    def _find(self, item_id: Union[str, int], item_type: Union[ItemType, str]) -> Optional[CartItem]:
        try:
            key = self._normalize_key(item_id, item_type)
        except ValueError:
            return None
        for item in self._items:
            if item.key == key:
                return item
        return None

    # Persistence

    def load(self) -> None:
        """Reload items from storage; an unreadable blob resets the cart"""
        blob = self.storage.get(self.storage_key)
        if not blob:
            self._items = []
            return

        try:
            items = _cart_items.validate_json(blob)
        except ValidationError as e:
            self._discard(f"{e.error_count()} validation error(s)")
            return

        if len({item.key for item in items}) != len(items):
            self._discard("duplicate (id, type) entries")
            return

        self._items = items

    def _discard(self, reason: str) -> None:
        logger.warning(
            f"Discarding unreadable stored cart: {reason}",
            extra={"cart_key_hash": self._hash_key()}
        )
        self.storage.delete(self.storage_key)
        self._items = []

    def _persist(self) -> None:
        payload = _cart_items.dump_json(self._items, by_alias=True)
        self.storage.set(self.storage_key, payload.decode())

    # Subscriptions

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, event: CartEvent) -> None:
        self._persist()
        logger.debug(
            f"Cart {event.kind.value}",
            extra={"cart_key_hash": self._hash_key(), "item_count": self.get_item_count()}
        )
        for listener in list(self._listeners):
            listener(event)

    # Queries

    @property
    def items(self) -> List[CartItem]:
        """Copies of the current items in insertion order"""
        return [item.model_copy(deep=True) for item in self._items]

    @property
    def is_empty(self) -> bool:
        return not self._items

    def get_item(self, item_id: Union[str, int], item_type: Union[ItemType, str]) -> Optional[CartItem]:
        item = self._find(item_id, item_type)
        return item.model_copy(deep=True) if item else None

    def get_total_price(self) -> Decimal:
        return sum((item.line_total for item in self._items), Decimal("0"))

    def get_item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    # Mutations

    def add_item(self, item: Union[CartItem, Mapping[str, Any]], announce_type: bool = True) -> CartItem:
        """
        Add an item, or bump the quantity of the entry with the same (id, type).

        Args:
            item: Item to add
            announce_type: Name the item type in the "added" event title
                ("Flight Added to Cart") rather than the plain "Item Added"

        Returns:
            Copy of the stored entry
        """
        incoming = item if isinstance(item, CartItem) else CartItem.model_validate(item)
        existing = self._find(incoming.id, incoming.type)

        if existing is not None:
            existing.quantity += 1
            stored = existing
            event = CartEvent(
                kind=CartEventKind.UPDATED,
                title="Item Updated",
                description=f"{existing.name} quantity increased.",
                item=existing.model_copy(deep=True)
            )
        else:
            stored = incoming.model_copy(deep=True, update={"quantity": 1})
            self._items.append(stored)
            if announce_type:
                title = f"{stored.type.display_name} Added to Cart"
                description = f"{stored.name} has been added to your cart."
            else:
                title = "Item Added"
                description = f"{stored.name} added to your cart."
            event = CartEvent(
                kind=CartEventKind.ADDED,
                title=title,
                description=description,
                item=stored.model_copy(deep=True)
            )

        self._commit(event)
        return stored.model_copy(deep=True)

    def remove_item(self, item_id: Union[str, int], item_type: Union[ItemType, str]) -> bool:
        """Remove the entry matching (id, type); returns whether one was removed"""
        existing = self._find(item_id, item_type)
        if existing is None:
            return False

        self._items.remove(existing)
        self._commit(CartEvent(
            kind=CartEventKind.REMOVED,
            title="Item Removed",
            description=f"{existing.name} removed from your cart.",
            item=existing
        ))
        return True

    def update_quantity(
        self,
        item_id: Union[str, int],
        item_type: Union[ItemType, str],
        quantity: int
    ) -> Optional[CartItem]:
        """Set an entry's quantity; zero or less removes it"""
        if quantity <= 0:
            self.remove_item(item_id, item_type)
            return None

        existing = self._find(item_id, item_type)
        if existing is None:
            return None

        existing.quantity = quantity
        self._commit(CartEvent(
            kind=CartEventKind.QUANTITY_CHANGED,
            title="Quantity Updated",
            description=f"{existing.name} quantity set to {quantity}.",
            item=existing.model_copy(deep=True)
        ))
        return existing.model_copy(deep=True)

    def update_special_requests(
        self,
        item_id: Union[str, int],
        item_type: Union[ItemType, str],
        requests: str
    ) -> Optional[CartItem]:
        existing = self._find(item_id, item_type)
        if existing is None:
            return None

        existing.special_requests = requests
        self._commit(self._details_changed(existing))
        return existing.model_copy(deep=True)

    def update_add_ons(
        self,
        item_id: Union[str, int],
        item_type: Union[ItemType, str],
        add_ons: List[str]
    ) -> Optional[CartItem]:
        existing = self._find(item_id, item_type)
        if existing is None:
            return None

        existing.add_ons = list(add_ons)
        self._commit(self._details_changed(existing))
        return existing.model_copy(deep=True)

    def clear_cart(self) -> None:
        self._items = []
        self._commit(CartEvent(
            kind=CartEventKind.CLEARED,
            title="Cart Cleared",
            description="All items have been removed from your cart."
        ))

    @staticmethod
    def _details_changed(item: CartItem) -> CartEvent:
        return CartEvent(
            kind=CartEventKind.DETAILS_CHANGED,
            title="Item Updated",
            description=f"{item.name} details updated.",
            item=item.model_copy(deep=True)
        )
