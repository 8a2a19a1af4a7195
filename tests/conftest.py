"""
Pytest configuration and fixtures.
Adds the repo root to sys.path so tests can import yume without installing.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from yume.config.markets import MarketDescriptor  # noqa: E402
from yume.core.errors import PartialParseSkipped  # noqa: E402
from yume.infra.sui_client import DynamicFieldEntry, DynamicFieldPage, OwnedObjectPage  # noqa: E402

PKG = "0x" + "ab" * 32
BOOK = "0x" + "b0" * 32
VAULT = "0x" + "c0" * 32
POOL = "0x" + "d0" * 32
TABLE = "0x" + "e0" * 32
ALICE = "0x" + "a1" * 32
BOB = "0x" + "b2" * 32


def make_market(**overrides: Any) -> MarketDescriptor:
    fields = dict(
        id="sui-sui-7d",
        label="SUI / SUI 7D",
        base_type="0x2::sui::SUI",
        collateral_type="0x2::sui::SUI",
        base_decimals=9,
        duration=604_800,
        risk_tier=0,
        max_ltv_bps=9000,
        orderbook_id=BOOK,
        vault_id=VAULT,
        pool_id=POOL,
        package_id=PKG,
    )
    fields.update(overrides)
    return MarketDescriptor(**fields)


def order_object_id(order_id: int) -> str:
    return "0x" + f"{order_id:064x}"


def order_obj(
    order_id: int,
    side: int,
    amount: int,
    rate: int,
    owner: str = ALICE,
    active: bool = True,
) -> Dict[str, Any]:
    """A decoded Field<u64, Order> object as sui_getObject returns it."""
    return {
        "objectId": order_object_id(order_id),
        "content": {
            "dataType": "moveObject",
            "fields": {
                "id": {"id": order_object_id(order_id)},
                "name": str(order_id),
                "value": {
                    "type": f"{PKG}::order_book::Order",
                    "fields": {
                        "order_id": str(order_id),
                        "owner": owner,
                        "side": side,
                        "amount": str(amount),
                        "rate": str(rate),
                        "timestamp": "1700000000000",
                        "is_active": active,
                    },
                },
            },
        },
    }


def book_obj(next_order_id: int) -> Dict[str, Any]:
    return {
        "objectId": BOOK,
        "content": {
            "fields": {
                "id": {"id": BOOK},
                "next_order_id": str(next_order_id),
                "orders": {"type": "0x2::table::Table<u64, Order>", "fields": {"id": {"id": TABLE}, "size": "0"}},
                "duration_bucket": "604800",
                "risk_tier": 0,
                "max_ltv_bps": "9000",
                "is_active": True,
            }
        },
    }


class FakeSuiClient:
    """
    In-memory stand-in for SuiReadClient.

    objects: object id -> decoded object data, or an Exception to raise
    tables:  parent id -> list of pages (lists of object ids)
    owned:   owner -> list of pages (lists of decoded objects)
    """

    def __init__(self) -> None:
        self.objects: Dict[str, Any] = {}
        self.tables: Dict[str, List[List[Any]]] = {}
        self.owned: Dict[str, List[List[Dict[str, Any]]]] = {}
        self.calls: List[tuple] = []

    def add_orders(self, *orders: Dict[str, Any], page_size: int = 50) -> None:
        self.objects[BOOK] = book_obj(len(orders))
        ids = []
        for o in orders:
            self.objects[o["objectId"]] = o
            ids.append(o["objectId"])
        self.tables[TABLE] = [ids[i:i + page_size] for i in range(0, len(ids), page_size)] or [[]]

    async def get_object(self, object_id: str) -> Dict[str, Any]:
        self.calls.append(("get_object", object_id))
        value = self.objects.get(object_id)
        if value is None:
            raise PartialParseSkipped("object error: notExists", object_id)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_dynamic_fields(self, parent_id: str, cursor: Optional[str] = None, limit: int = 50) -> DynamicFieldPage:
        self.calls.append(("get_dynamic_fields", parent_id, cursor))
        pages = self.tables.get(parent_id, [[]])
        if isinstance(pages, Exception):
            raise pages
        idx = int(cursor) if cursor is not None else 0
        entries = []
        for item in pages[idx]:
            if isinstance(item, DynamicFieldEntry):
                entries.append(item)
            else:
                entries.append(DynamicFieldEntry(object_id=item, name_type="u64", name_value="0", object_type=""))
        has_next = idx + 1 < len(pages)
        return DynamicFieldPage(entries=entries, next_cursor=str(idx + 1) if has_next else None, has_next_page=has_next)

    async def get_owned_objects(
        self, owner: str, struct_type: Optional[str] = None, cursor: Optional[str] = None, limit: int = 50
    ) -> OwnedObjectPage:
        self.calls.append(("get_owned_objects", owner, struct_type, cursor))
        pages = self.owned.get(owner, [[]])
        idx = int(cursor) if cursor is not None else 0
        has_next = idx + 1 < len(pages)
        return OwnedObjectPage(objects=list(pages[idx]), next_cursor=str(idx + 1) if has_next else None, has_next_page=has_next)

    def count(self, method: str) -> int:
        return sum(1 for c in self.calls if c[0] == method)


@pytest.fixture
def market() -> MarketDescriptor:
    return make_market()


@pytest.fixture
def fake_client() -> FakeSuiClient:
    return FakeSuiClient()
