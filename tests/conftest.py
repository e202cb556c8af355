# flake8: noqa
import sys
from pathlib import Path

# Ensure project root is on sys.path so `myrecipes` can be imported when tests are run
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))  # noqa: E402

import pytest
from fastapi.testclient import TestClient  # noqa: E402

from myrecipes import crud, models, schemas
from myrecipes.app import create_app
from myrecipes.config import Settings


SECRET = "test-secret"


@pytest.fixture
def settings():
    # in-memory database shared across connections (StaticPool), cheap hashing
    return Settings(database_url="sqlite://", jwt_secret=SECRET, bcrypt_rounds=4)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # entering the client runs the lifespan, which creates the tables
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    session = app.state.SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, settings, name, email, password):
    user = crud.create_user(
        db, schemas.UserCreate(name=name, email=email, password=password), settings
    )
    token = crud.issue_token(db, user, settings)
    return {"id": user.id, "name": name, "email": email, "password": password, "token": token}


def _make_recipe(db, owner_id, title, description, total_time, ingredients=(), steps=()):
    recipe = models.Recipe(
        title=title,
        description=description,
        total_time=total_time,
        ingredients=list(ingredients),
        steps=list(steps),
        owner_id=owner_id,
    )
    db.add(recipe)
    db.commit()
    db.refresh(recipe)
    return recipe.id


@pytest.fixture
def user_one(db, settings):
    return _make_user(db, settings, "Theo", "theo@example.com", "Bananas567#")


@pytest.fixture
def user_two(db, settings):
    return _make_user(db, settings, "Mia", "mia@example.com", "Apples890$")


@pytest.fixture
def recipes(db, user_one, user_two):
    """Two recipes for user one, one for user two."""
    return {
        "one": _make_recipe(
            db, user_one["id"], "Pancakes", "Fluffy pancakes", 20,
            ["flour", "milk", "egg"], ["Mix", "Fry"],
        ),
        "two": _make_recipe(
            db, user_one["id"], "Burrito Bowl", "Burrito in a bowl", 60,
            ["rice", "beans"], ["Cook rice", "Assemble"],
        ),
        "three": _make_recipe(
            db, user_two["id"], "Tomato Soup", "Warm soup", 45,
            ["tomato"], ["Simmer"],
        ),
    }


def auth_header(user):
    return {"Authorization": f"Bearer {user['token']}"}
