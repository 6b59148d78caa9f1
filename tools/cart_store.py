"""Cart storage abstractions: SQLite for signed-in callers, memory for guests."""
from __future__ import annotations

import sqlite3
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from models.cart import CartItem
from models.errors import PersistenceFailure
from tools.observability import instrument_tool


class CartStore:
    """Persistence interface for cart line items."""

    def add_item(self, caller_id: str, item: CartItem) -> CartItem:
        """Add ``item``, merging quantities with an existing line for the same product and size."""

        raise NotImplementedError

    def list_items(self, caller_id: str) -> List[CartItem]:
        raise NotImplementedError

    def remove_item(self, caller_id: str, product_id: str, size: Optional[str] = None) -> bool:
        raise NotImplementedError

    def clear(self, caller_id: str) -> None:
        raise NotImplementedError


class SQLiteCartStore(CartStore):
    """Local SQLite-backed cart."""

    def __init__(self, database_path: str | Path = "data/cart.db") -> None:
        self.database_path = Path(database_path)
        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cart_items (
                    caller_id TEXT NOT NULL,
                    product_id TEXT NOT NULL,
                    size TEXT NOT NULL DEFAULT '',
                    name TEXT,
                    price TEXT,
                    quantity INTEGER NOT NULL,
                    image_url TEXT,
                    PRIMARY KEY (caller_id, product_id, size)
                );
                """
            )

    @staticmethod
    def _row_to_item(row: sqlite3.Row) -> CartItem:
        return CartItem(
            product_id=row["product_id"],
            name=row["name"],
            price=Decimal(row["price"]),
            quantity=row["quantity"],
            size=row["size"] or None,
            image_url=row["image_url"],
        )

    @instrument_tool("add_cart_item")
    def add_item(self, caller_id: str, item: CartItem) -> CartItem:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO cart_items (caller_id, product_id, size, name, price, quantity, image_url)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(caller_id, product_id, size)
                    DO UPDATE SET quantity = quantity + excluded.quantity,
                                  price = excluded.price,
                                  name = excluded.name,
                                  image_url = excluded.image_url
                    """,
                    (
                        caller_id,
                        item.product_id,
                        item.size or "",
                        item.name,
                        str(item.price),
                        item.quantity,
                        item.image_url,
                    ),
                )
                row = conn.execute(
                    "SELECT * FROM cart_items WHERE caller_id = ? AND product_id = ? AND size = ?",
                    (caller_id, item.product_id, item.size or ""),
                ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Could not add {item.product_id} to cart: {exc}") from exc
        return self._row_to_item(row)

    def list_items(self, caller_id: str) -> List[CartItem]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM cart_items WHERE caller_id = ? ORDER BY rowid",
                    (caller_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Could not read cart: {exc}") from exc
        return [self._row_to_item(row) for row in rows]

    def remove_item(self, caller_id: str, product_id: str, size: Optional[str] = None) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM cart_items WHERE caller_id = ? AND product_id = ? AND size = ?",
                (caller_id, product_id, size or ""),
            )
            return cursor.rowcount > 0

    def clear(self, caller_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM cart_items WHERE caller_id = ?", (caller_id,))


class LocalCart(CartStore):
    """Guest cart kept in process memory, keyed by an anonymous caller token."""

    def __init__(self) -> None:
        self._carts: Dict[str, Dict[Tuple[str, Optional[str]], CartItem]] = {}

    def add_item(self, caller_id: str, item: CartItem) -> CartItem:
        lines = self._carts.setdefault(caller_id, {})
        existing = lines.get(item.line_key)
        if existing is None:
            stored = CartItem(**vars(item))
        else:
            stored = CartItem(**{**vars(item), "quantity": existing.quantity + item.quantity})
        lines[item.line_key] = stored
        return stored

    def list_items(self, caller_id: str) -> List[CartItem]:
        return list(self._carts.get(caller_id, {}).values())

    def remove_item(self, caller_id: str, product_id: str, size: Optional[str] = None) -> bool:
        return self._carts.get(caller_id, {}).pop((product_id, size), None) is not None

    def clear(self, caller_id: str) -> None:
        self._carts.pop(caller_id, None)


__all__ = ["CartStore", "LocalCart", "SQLiteCartStore"]
