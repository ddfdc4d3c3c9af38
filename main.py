import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, PyMongoError

from catalog import Catalog
from config import Settings, get_settings
from database import MongoStore
from errors import ExportHubError, UnexpectedError
from ledger import InventoryLedger
from schemas import GoogleLogin, ImportCreate, LoginRequest, ProductCreate, ProductUpdate, UserRegister, UserUpdate
from users import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


# Dependencies
def get_store(request: Request) -> MongoStore:
    return request.app.state.store


def get_ledger(request: Request) -> InventoryLedger:
    return request.app.state.ledger


def get_catalog(request: Request) -> Catalog:
    return request.app.state.catalog


def get_users(request: Request) -> UserService:
    return request.app.state.users


def ok(data=None, status_code: int = status.HTTP_200_OK, **extras):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extras)
    if status_code == status.HTTP_200_OK:
        return body
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@router.get("/")
def root(request: Request, store: MongoStore = Depends(get_store)):
    return {
        "success": True,
        "message": "Export Hub Server is running",
        "mongoConnected": store.is_connected,
        "env": request.app.state.settings.env,
        "endpoints": {
            "products": "/products",
            "imports": "/imports",
            "exports": "/exports",
            "users": "/users",
            "categories": "/categories",
            "stats": "/stats",
        },
    }


@router.get("/health")
def healthcheck(request: Request):
    return {"status": "ok", "env": request.app.state.settings.env}


# Product endpoints
@router.get("/products")
def list_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    search: str = "",
    category: Optional[str] = None,
    catalog: Catalog = Depends(get_catalog),
):
    result = catalog.list_products(page=page, limit=limit, search=search, category=category)
    return ok(result["data"], pagination=result["pagination"])


@router.get("/products/featured/latest")
def featured_products(limit: int = Query(default=6, ge=1, le=100), catalog: Catalog = Depends(get_catalog)):
    return ok(catalog.latest(limit))


@router.get("/products/{product_id}")
def get_product(product_id: str, catalog: Catalog = Depends(get_catalog)):
    return ok(catalog.get_product(product_id))


@router.post("/products")
def create_product(payload: ProductCreate, catalog: Catalog = Depends(get_catalog)):
    product = catalog.create_product(payload)
    return ok(product, status.HTTP_201_CREATED, message="Product added successfully")


@router.put("/products/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, catalog: Catalog = Depends(get_catalog)):
    modified = catalog.update_product(product_id, payload)
    return ok(message="Product updated successfully", modifiedCount=modified)


@router.delete("/products/{product_id}")
def delete_product(product_id: str, ledger: InventoryLedger = Depends(get_ledger)):
    ledger.delete_product(product_id)
    return ok(message="Product deleted successfully")


@router.get("/exports/{email}")
def my_exports(email: str, catalog: Catalog = Depends(get_catalog)):
    products = catalog.exports_for(email)
    return ok(products, count=len(products))


# Import endpoints
@router.post("/imports")
def import_product(payload: ImportCreate, ledger: InventoryLedger = Depends(get_ledger)):
    result = ledger.create_import(payload)
    data = {
        "id": result.import_id,
        "importedQuantity": result.imported_quantity,
        "merged": result.merged,
    }
    return ok(data, status.HTTP_201_CREATED, message="Product imported successfully")


@router.get("/imports/{email}")
def my_imports(email: str, ledger: InventoryLedger = Depends(get_ledger)):
    imports = ledger.imports_for(email)
    return ok(imports, count=len(imports))


@router.delete("/imports/{import_id}")
def remove_import(import_id: str, ledger: InventoryLedger = Depends(get_ledger)):
    ledger.remove_import(import_id)
    return ok(message="Import removed successfully")


# Summary endpoints
@router.get("/categories")
def list_categories(catalog: Catalog = Depends(get_catalog)):
    return ok(catalog.categories())


@router.get("/stats")
def stats(catalog: Catalog = Depends(get_catalog)):
    return ok(catalog.stats())


@router.get("/dashboard/{email}")
def dashboard(email: str, catalog: Catalog = Depends(get_catalog)):
    return ok(catalog.dashboard(email))


# User endpoints
@router.post("/users/register")
def register(payload: UserRegister, users: UserService = Depends(get_users)):
    user = users.register(payload)
    return ok(user, status.HTTP_201_CREATED, message="User registered successfully")


@router.post("/users/login")
def login(payload: LoginRequest, users: UserService = Depends(get_users)):
    return ok(users.login(payload.email, payload.password))


@router.post("/users/google")
def google_login(payload: GoogleLogin, users: UserService = Depends(get_users)):
    return ok(users.google_login(payload))


@router.get("/users/{email}")
def get_user(email: str, users: UserService = Depends(get_users)):
    return ok(users.get(email))


@router.put("/users/{email}")
def update_user(email: str, payload: UserUpdate, users: UserService = Depends(get_users)):
    return ok(users.update(email, payload), message="Profile updated successfully")


# Error envelopes
async def handle_app_error(request: Request, exc: ExportHubError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_envelope())


async def handle_validation_error(request: Request, exc: RequestValidationError):
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        name = loc[-1] if loc else "body"
        if name not in fields:
            fields.append(name)
    logger.info("%s %s -> 400 invalid fields %s", request.method, request.url.path, fields)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Required fields missing or invalid", "fields": fields},
    )


async def handle_store_error(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    if isinstance(exc, ConnectionFailure):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"success": False, "error": "Database not available"},
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Unexpected database error"},
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=UnexpectedError().to_envelope())


SAMPLE_PRODUCTS = [
    {
        "productName": "Darjeeling First Flush Tea",
        "productImage": "https://images.unsplash.com/photo-1564890369478-c89ca6d9cde9?q=80&w=1200&auto=format&fit=crop",
        "price": 24.5,
        "originCountry": "India",
        "rating": 4.8,
        "availableQuantity": 120,
        "category": "Food & Beverage",
    },
    {
        "productName": "Hand-woven Wool Rug",
        "productImage": "https://images.unsplash.com/photo-1600166898405-da9535204843?q=80&w=1200&auto=format&fit=crop",
        "price": 310.0,
        "originCountry": "Morocco",
        "rating": 4.6,
        "availableQuantity": 15,
        "category": "Home",
    },
    {
        "productName": "Single-origin Coffee Beans",
        "productImage": "https://images.unsplash.com/photo-1559056199-641a0ac8b55e?q=80&w=1200&auto=format&fit=crop",
        "price": 18.0,
        "originCountry": "Ethiopia",
        "rating": 4.9,
        "availableQuantity": 300,
        "category": "Food & Beverage",
    },
]


def seed_data(store: MongoStore):
    if store.products.count_documents({}) > 0:
        return
    for sample in SAMPLE_PRODUCTS:
        store.create_document("products", {**sample, "userEmail": "demo123@gmail.com", "userName": "Demo User"})
    logger.info("Seeded %d sample products", len(SAMPLE_PRODUCTS))


def create_app(settings: Optional[Settings] = None, store: Optional[MongoStore] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if store is None:
        store = MongoStore(settings.mongodb_uri, settings.database_name, settings.mongodb_timeout_ms)

    app = FastAPI(title="Export Hub API", version="1.0.0")
    app.state.settings = settings
    app.state.store = store
    app.state.ledger = InventoryLedger(store, stock_guard=settings.stock_guard)
    app.state.catalog = Catalog(store)
    app.state.users = UserService(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ExportHubError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(PyMongoError, handle_store_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)

    @app.on_event("startup")
    def connect_store():
        if not store.connect():
            return
        store.ensure_indexes()
        if settings.seed_demo_data:
            seed_data(store)

    @app.on_event("shutdown")
    def close_store():
        store.close()

    return app


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
