"""Wishlist storage with change subscriptions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict, List

from models.errors import PersistenceFailure
from models.taxonomy import validate_caller_id

WishlistSubscriber = Callable[[List[str]], None]


class WishlistStore:
    """A single caller's wishlist of product ids."""

    def get(self) -> List[str]:
        raise NotImplementedError

    def toggle(self, product_id: str) -> bool:
        """Add ``product_id`` if absent, remove it otherwise. Returns ``True`` when added."""

        raise NotImplementedError

    def subscribe(self, callback: WishlistSubscriber) -> int:
        raise NotImplementedError

    def unsubscribe(self, token: int) -> None:
        raise NotImplementedError


class JSONWishlistStore(WishlistStore):
    """JSON-file wishlist; subscribers receive a copy of the list on every change."""

    def __init__(self, caller_id: str, base_dir: str | Path = "data/wishlists") -> None:
        self.caller_id = validate_caller_id(caller_id)
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._subscribers: Dict[int, WishlistSubscriber] = {}
        self._next_subscriber_id = 1

    def _path(self) -> Path:
        return self.base_dir / f"{self.caller_id}.json"

    def get(self) -> List[str]:
        path = self._path()
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(f"Could not read wishlist: {exc}") from exc
        return [str(product_id) for product_id in data.get("product_ids", [])]

    def toggle(self, product_id: str) -> bool:
        product_ids = self.get()
        added = product_id not in product_ids
        if added:
            product_ids.append(product_id)
        else:
            product_ids = [existing for existing in product_ids if existing != product_id]
        try:
            self._path().write_text(json.dumps({"caller_id": self.caller_id, "product_ids": product_ids}, indent=2))
        except OSError as exc:
            raise PersistenceFailure(f"Could not save wishlist: {exc}") from exc
        self._emit(product_ids)
        return added

    def subscribe(self, callback: WishlistSubscriber) -> int:
        token = self._next_subscriber_id
        self._next_subscriber_id += 1
        self._subscribers[token] = callback
        return token

    def unsubscribe(self, token: int) -> None:
        self._subscribers.pop(token, None)

    def _emit(self, product_ids: List[str]) -> None:
        for callback in list(self._subscribers.values()):
            callback(list(product_ids))


__all__ = ["JSONWishlistStore", "WishlistStore", "WishlistSubscriber"]
