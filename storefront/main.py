# storefront/main.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth_utils import (create_access_token, get_current_user, get_settings, require_menu_creator,
                                   require_user)
from storefront.config import Settings, configure_logging, settings as default_settings
from storefront.db import functions as db_functions
from storefront.db.database import Database, get_db
from storefront.db.init_db import init_db
from storefront.db.models import User
from storefront.db.schemas import (CartAdd, CartLine, CartRemove, CartUpdateQuantity, LoginRequest, LoginResponse,
                                   MenuItemCreate, MenuItemSchema, SuccessResponse, UserSchema)
from storefront.errors import PermissionDenied, StorefrontError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trpc")


# ---------------------------------------------------------------- auth

@router.get("/auth.me", response_model=Optional[UserSchema])
async def auth_me(user: Optional[User] = Depends(get_current_user)):
    return user


@router.post("/auth.login", response_model=LoginResponse)
async def auth_login(payload: LoginRequest, request: Request, response: Response,
                     db: AsyncSession = Depends(get_db)):
    """Mock login: upserts the user and hands out a session token."""
    settings = get_settings(request)
    if not settings.allow_mock_login:
        raise PermissionDenied("Mock login is disabled")
    user = await db_functions.upsert_user(db, payload.open_id, name=payload.name, email=payload.email,
                                          login_method="mock")
    token = create_access_token({"sub": user.open_id, "id": user.id}, settings)
    response.set_cookie(key=settings.cookie_name, value=token, httponly=True, samesite="lax")
    logger.info("user %s logged in", user.id)
    return LoginResponse(token=token, user=UserSchema.model_validate(user))


@router.post("/auth.logout", response_model=SuccessResponse)
async def auth_logout(request: Request, response: Response):
    response.delete_cookie(get_settings(request).cookie_name)
    return SuccessResponse()


# ---------------------------------------------------------------- menu

@router.get("/menu.list", response_model=List[MenuItemSchema])
async def menu_list(db: AsyncSession = Depends(get_db)):
    return await db_functions.get_all_menu_items(db)


@router.get("/menu.getById", response_model=Optional[MenuItemSchema])
async def menu_get_by_id(id: int, db: AsyncSession = Depends(get_db)):
    return await db_functions.get_menu_item_by_id(db, id)


@router.post("/menu.create", response_model=MenuItemSchema)
async def menu_create(payload: MenuItemCreate, user: User = Depends(require_menu_creator),
                      db: AsyncSession = Depends(get_db)):
    new_item = await db_functions.create_menu_item(
        db,
        name=payload.name,
        price=payload.price,
        description=payload.description,
        image_url=payload.image_url,
        category=payload.category,
    )
    logger.info("user %s created menu item %s", user.id, new_item.id)
    return new_item


# ---------------------------------------------------------------- cart

@router.get("/cart.list", response_model=List[CartLine])
async def cart_list(user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    rows = await db_functions.get_cart_items_by_user_id(db, user.id)
    return [
        CartLine(
            id=cart_item.id,
            user_id=cart_item.user_id,
            menu_item_id=cart_item.menu_item_id,
            quantity=cart_item.quantity,
            created_at=cart_item.created_at,
            menu_item=MenuItemSchema.model_validate(menu_item) if menu_item is not None else None,
        )
        for cart_item, menu_item in rows
    ]


@router.post("/cart.add", response_model=SuccessResponse)
async def cart_add(payload: CartAdd, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    await db_functions.add_to_cart(db, user.id, payload.menu_item_id, payload.quantity)
    return SuccessResponse()


@router.post("/cart.updateQuantity", response_model=SuccessResponse)
async def cart_update_quantity(payload: CartUpdateQuantity, user: User = Depends(require_user),
                               db: AsyncSession = Depends(get_db)):
    await db_functions.update_cart_item_quantity(db, payload.cart_item_id, user.id, payload.quantity)
    return SuccessResponse()


@router.post("/cart.remove", response_model=SuccessResponse)
async def cart_remove(payload: CartRemove, user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    await db_functions.remove_from_cart(db, payload.cart_item_id, user.id)
    return SuccessResponse()


@router.post("/cart.clear", response_model=SuccessResponse)
async def cart_clear(user: User = Depends(require_user), db: AsyncSession = Depends(get_db)):
    await db_functions.clear_cart(db, user.id)
    return SuccessResponse()


# ---------------------------------------------------------------- errors

async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query")]
    err = ValidationError(first.get("msg", "Invalid input"), field=".".join(loc) or None)
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        database = Database(settings.database_url, echo=settings.sql_echo)
        await init_db(database, seed=settings.seed_menu)
        app.state.database = database
        yield
        await database.dispose()

    app = FastAPI(lifespan=lifespan, title="storefront")
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router)

    @app.get("/")
    async def health_check():
        """Health check endpoint."""
        return {"status": "storefront running"}

    return app


app = create_app()


def run():
    import uvicorn

    uvicorn.run("storefront.main:app", host="0.0.0.0", port=8000)
