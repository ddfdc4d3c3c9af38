"""
Inventory ledger: moves quantity between a product's available stock and the
import records of the users who bought it.

For every product, availableQuantity plus the importedQuantity of all imports
referencing it stays equal to the stock the product started with.
"""
import logging
from dataclasses import dataclass
from typing import List

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import MongoStore, parse_object_id, to_str_id, utcnow
from errors import InsufficientStock, NotFound, ProductInUse, ValidationFailed
from schemas import ImportCreate

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


@dataclass
class ImportResult:
    import_id: str
    merged: bool
    imported_quantity: int


class InventoryLedger:
    def __init__(self, store: MongoStore, stock_guard: bool = True):
        self.store = store
        # When set, the stock decrement is conditional on remaining quantity.
        self.stock_guard = stock_guard

    def create_import(self, request: ImportCreate) -> ImportResult:
        product_oid = parse_object_id(request.product_id, "product ID")
        quantity = request.imported_quantity
        if quantity <= 0:
            raise ValidationFailed("importedQuantity must be a positive integer")

        product = self.store.products.find_one({"_id": product_oid})
        if not product:
            raise NotFound("Product not found")
        available = product.get("availableQuantity", 0)
        if isinstance(available, bool) or not isinstance(available, (int, float)):
            raise ValidationFailed("Product quantity is not numeric; run maintenance fix-data")
        if available < quantity:
            logger.info(
                "Import of %d x %s by %s rejected, %d available",
                quantity, request.product_id, request.user_email, available,
            )
            raise InsufficientStock(available=available, requested=quantity)

        if self.stock_guard:
            return self._create_import_guarded(product_oid, request)
        return self._create_import_sequential(product_oid, request)

    def _create_import_sequential(self, product_oid, request: ImportCreate) -> ImportResult:
        quantity = request.imported_quantity
        now = utcnow()
        existing = self.store.imports.find_one(
            {"productId": str(product_oid), "userEmail": request.user_email}
        )
        if existing:
            self.store.imports.update_one(
                {"_id": existing["_id"]},
                {"$inc": {"importedQuantity": quantity}, "$set": {"updatedAt": now}},
            )
            result = ImportResult(str(existing["_id"]), True, existing["importedQuantity"] + quantity)
        else:
            doc = {
                "productId": str(product_oid),
                **request.snapshot(),
                "importedQuantity": quantity,
                "userEmail": request.user_email,
                "userName": request.user_name or ANONYMOUS,
                "createdAt": now,
                "updatedAt": now,
            }
            inserted = self.store.imports.insert_one(doc)
            result = ImportResult(str(inserted.inserted_id), False, quantity)

        self.store.products.update_one(
            {"_id": product_oid},
            {"$inc": {"availableQuantity": -quantity}, "$set": {"updatedAt": now}},
        )
        self._log_import(request, result)
        return result

    def _create_import_guarded(self, product_oid, request: ImportCreate) -> ImportResult:
        quantity = request.imported_quantity
        now = utcnow()
        decremented = self.store.products.update_one(
            {"_id": product_oid, "availableQuantity": {"$gte": quantity}},
            {"$inc": {"availableQuantity": -quantity}, "$set": {"updatedAt": now}},
        )
        if decremented.matched_count == 0:
            # Stock changed (or product vanished) since the availability read.
            current = self.store.products.find_one({"_id": product_oid})
            if not current:
                raise NotFound("Product not found")
            logger.warning(
                "Conditional decrement of %s lost a race, %d left",
                request.product_id, current.get("availableQuantity", 0),
            )
            raise InsufficientStock(available=current.get("availableQuantity", 0), requested=quantity)

        # productId and userEmail come from the upsert filter
        on_insert = {
            **request.snapshot(),
            "userName": request.user_name or ANONYMOUS,
            "createdAt": now,
        }
        merge = (
            {"productId": str(product_oid), "userEmail": request.user_email},
            {
                "$inc": {"importedQuantity": quantity},
                "$set": {"updatedAt": now},
                "$setOnInsert": on_insert,
            },
        )
        try:
            try:
                doc = self.store.imports.find_one_and_update(
                    *merge, upsert=True, return_document=ReturnDocument.AFTER
                )
            except DuplicateKeyError:
                # A concurrent first import won the insert; this one merges into it.
                doc = self.store.imports.find_one_and_update(
                    *merge, upsert=True, return_document=ReturnDocument.AFTER
                )
        except PyMongoError:
            logger.exception("Import upsert failed, returning %d units to %s", quantity, request.product_id)
            self.store.products.update_one({"_id": product_oid}, {"$inc": {"availableQuantity": quantity}})
            raise
        result = ImportResult(str(doc["_id"]), doc["importedQuantity"] != quantity, doc["importedQuantity"])
        self._log_import(request, result)
        return result

    def _log_import(self, request: ImportCreate, result: ImportResult):
        logger.info(
            "%s import %s: %s took %d x %s (now %d)",
            "Merged" if result.merged else "Created",
            result.import_id, request.user_email, request.imported_quantity,
            request.product_id, result.imported_quantity,
        )

    def remove_import(self, import_id: str) -> dict:
        oid = parse_object_id(import_id, "import ID")
        # Only the caller that deletes the record restores its quantity.
        record = self.store.imports.find_one_and_delete({"_id": oid})
        if not record:
            raise NotFound("Import not found")

        quantity = record.get("importedQuantity", 0)
        product_id = record.get("productId")
        try:
            product_oid = parse_object_id(product_id, "product ID")
        except ValidationFailed:
            product_oid = None
        restored = 0
        if product_oid is not None:
            restored = self.store.products.update_one(
                {"_id": product_oid},
                {"$inc": {"availableQuantity": quantity}, "$set": {"updatedAt": utcnow()}},
            ).matched_count
        if not restored:
            logger.warning(
                "Import %s references missing product %s; %d units not restored",
                import_id, product_id, quantity,
            )

        logger.info("Removed import %s, restored %d x %s", import_id, quantity, product_id)
        return to_str_id(record)

    def delete_product(self, product_id: str):
        oid = parse_object_id(product_id, "product ID")
        if not self.store.products.find_one({"_id": oid}, {"_id": 1}):
            raise NotFound("Product not found")

        outstanding = self.store.imports.count_documents({"productId": str(oid)})
        if outstanding > 0:
            logger.info("Refusing to delete product %s: %d outstanding import(s)", product_id, outstanding)
            raise ProductInUse(outstanding)

        result = self.store.products.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise NotFound("Product not found")
        logger.info("Deleted product %s", product_id)

    def imports_for(self, user_email: str) -> List[dict]:
        cursor = self.store.imports.find({"userEmail": user_email}).sort("createdAt", DESCENDING)
        return [to_str_id(d) for d in cursor]
