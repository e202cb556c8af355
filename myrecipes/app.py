from contextlib import asynccontextmanager
from typing import Annotated, List, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Path, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import AuthContext, require_auth
from .config import Settings, configure_logging
from .db import get_db, init_db, make_engine, make_sessionmaker
from .errors import NotFound, ValidationFailed, install_error_handlers

router = APIRouter()

# ids past SQLite's 64-bit INTEGER cannot be bound to a query
RecipeId = Annotated[int, Path(ge=1, le=2**63 - 1)]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _check_update_keys(updates: dict, allowed):
    if not set(updates) <= allowed:
        raise ValidationFailed("Invalid updates.")


def _non_negative(value: Optional[str]) -> Optional[int]:
    # unusable paging values are ignored rather than rejected
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n >= 0 else None


# --- Users ---


@router.post("/users", status_code=201, response_model=schemas.AuthResponse)
def signup(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = crud.create_user(db, payload, settings)
    token = crud.issue_token(db, user, settings)
    return schemas.AuthResponse(user=schemas.User.model_validate(user), token=token)


@router.post("/users/login", response_model=schemas.AuthResponse)
def login(
    payload: schemas.Credentials,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = crud.authenticate(db, payload.email, payload.password)
    token = crud.issue_token(db, user, settings)
    return schemas.AuthResponse(user=schemas.User.model_validate(user), token=token)


@router.post("/users/logout")
def logout(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    crud.revoke_token(db, auth.user, auth.token)
    return Response(status_code=200)


@router.post("/users/logoutAll")
def logout_all(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    crud.revoke_all_tokens(db, auth.user)
    return Response(status_code=200)


@router.get("/users/me", response_model=schemas.User)
def read_me(auth: AuthContext = Depends(require_auth)):
    return auth.user


@router.patch("/users/me", response_model=schemas.User)
def update_me(
    updates: dict = Body(...),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    _check_update_keys(updates, schemas.USER_UPDATE_FIELDS)
    data = schemas.UserUpdate.model_validate(updates)
    return crud.update_user(db, auth.user, data, settings)


@router.delete("/users/me", response_model=schemas.User)
def delete_me(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return crud.delete_user(db, auth.user)


# --- Recipes ---


@router.post("/recipes", status_code=201, response_model=schemas.Recipe)
def create_recipe(
    payload: schemas.RecipeCreate,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return crud.create_recipe(db, payload, auth.user)


@router.get("/recipes", response_model=List[schemas.Recipe])
def list_recipes(
    title: Optional[str] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    limit: Optional[str] = None,
    skip: Optional[str] = None,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return crud.list_recipes(
        db,
        auth.user,
        title=title,
        sort_by=sort_by,
        limit=_non_negative(limit),
        skip=_non_negative(skip),
    )


@router.get("/recipes/{recipe_id}", response_model=schemas.Recipe)
def read_recipe(
    recipe_id: RecipeId,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    recipe = crud.get_recipe(db, recipe_id, auth.user)
    if not recipe:
        raise NotFound()
    return recipe


@router.patch("/recipes/{recipe_id}", response_model=schemas.Recipe)
def update_recipe(
    recipe_id: RecipeId,
    updates: dict = Body(...),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    _check_update_keys(updates, schemas.RECIPE_UPDATE_FIELDS)
    recipe = crud.get_recipe(db, recipe_id, auth.user)
    if not recipe:
        raise NotFound()
    data = schemas.RecipeUpdate.model_validate(updates)
    return crud.update_recipe(db, recipe, data)


@router.delete("/recipes/{recipe_id}", response_model=schemas.Recipe)
def delete_recipe(
    recipe_id: RecipeId,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    recipe = crud.delete_recipe(db, recipe_id, auth.user)
    if not recipe:
        raise NotFound()
    return recipe


def create_app(settings: Settings) -> FastAPI:
    engine = make_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        # Initialize DB once at startup
        init_db(engine)
        yield
        engine.dispose()

    app = FastAPI(title="My Recipes API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.SessionLocal = make_sessionmaker(engine)

    # Allow CORS for API clients (adjust origins for production)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)
    app.include_router(router)
    return app
