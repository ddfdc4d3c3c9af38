"""Product catalog reads and writes, plus the stats and dashboard summaries."""
import logging
import math
import re
from datetime import timedelta
from typing import Optional

from pymongo import DESCENDING

from database import MongoStore, parse_object_id, to_str_id, utcnow
from errors import NotFound, ValidationFailed
from schemas import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
ACTIVITY_DAYS = 7


class Catalog:
    def __init__(self, store: MongoStore):
        self.store = store

    def list_products(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE,
                      search: str = "", category: Optional[str] = None) -> dict:
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        filt = {}
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            filt["$or"] = [{"productName": pattern}, {"originCountry": pattern}]
        if category:
            filt["category"] = category

        cursor = (
            self.store.products.find(filt)
            .sort("createdAt", DESCENDING)
            .skip((page - 1) * limit)
            .limit(limit)
        )
        items = [to_str_id(d) for d in cursor]
        total = self.store.products.count_documents(filt)
        return {
            "data": items,
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit),
            },
        }

    def get_product(self, product_id: str) -> dict:
        oid = parse_object_id(product_id, "product ID")
        doc = self.store.products.find_one({"_id": oid})
        if not doc:
            raise NotFound("Product not found")
        return to_str_id(doc)

    def create_product(self, payload: ProductCreate) -> dict:
        doc = payload.model_dump(by_alias=True)
        doc["userName"] = doc.get("userName") or "Anonymous"
        if doc.get("category") is None:
            doc.pop("category", None)
        product_id = self.store.create_document("products", doc)
        logger.info("Created product %s for %s with %d units",
                    product_id, payload.user_email, payload.available_quantity)
        created = self.store.products.find_one({"_id": parse_object_id(product_id)})
        return to_str_id(created)

    def update_product(self, product_id: str, payload: ProductUpdate) -> int:
        oid = parse_object_id(product_id, "product ID")
        changes = payload.model_dump(by_alias=True, exclude_none=True)
        changes["updatedAt"] = utcnow()
        result = self.store.products.update_one({"_id": oid}, {"$set": changes})
        if result.matched_count == 0:
            raise NotFound("Product not found")
        return result.modified_count

    def exports_for(self, user_email: str) -> list:
        cursor = self.store.products.find({"userEmail": user_email}).sort("createdAt", DESCENDING)
        return [to_str_id(d) for d in cursor]

    def latest(self, limit: int = 6) -> list:
        if limit < 1:
            raise ValidationFailed("limit must be positive")
        docs = self.store.get_documents("products", limit=min(limit, MAX_PAGE_SIZE))
        return [to_str_id(d) for d in docs]

    def categories(self) -> list:
        values = self.store.products.distinct("category")
        return sorted(v for v in values if v)

    def stats(self) -> dict:
        return {
            "totalProducts": self.store.products.count_documents({}),
            "totalImports": self.store.imports.count_documents({}),
        }

    def dashboard(self, user_email: str) -> dict:
        exports = self.store.products.count_documents({"userEmail": user_email})
        imports = list(self.store.imports.find({"userEmail": user_email}, {"importedQuantity": 1}))
        units = sum(d.get("importedQuantity", 0) for d in imports)
        return {
            "totalExports": exports,
            "totalImports": len(imports),
            "totalUnitsImported": units,
            "activity": activity_series(exports, len(imports)),
        }


def activity_series(exports: int, imports: int, days: int = ACTIVITY_DAYS) -> list:
    """Synthetic per-day series for the dashboard chart; not derived from history."""
    today = utcnow().date()
    series = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        weight = (day.toordinal() % 3) + 1
        series.append({
            "date": day.isoformat(),
            "exports": (exports * weight) // 3,
            "imports": (imports * weight) // 3,
        })
    return series
