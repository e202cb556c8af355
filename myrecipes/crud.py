import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .config import Settings
from .errors import ValidationFailed
from .security import create_token, hash_password, verify_password

logger = logging.getLogger(__name__)

# wire name -> column for ?sortBy=
SORTABLE = {
    "title": models.Recipe.title,
    "description": models.Recipe.description,
    "totalTime": models.Recipe.total_time,
    "createdAt": models.Recipe.created_at,
    "updatedAt": models.Recipe.updated_at,
}


# --- Users ---


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def _ensure_email_free(db: Session, email: str, user_id=None):
    q = db.query(models.User.id).filter(models.User.email == email)
    if user_id is not None:
        q = q.filter(models.User.id != user_id)
    if q.first():
        raise ValidationFailed("Email is already in use.")


def _commit_user(db: Session, user: models.User):
    try:
        db.commit()
    except IntegrityError:
        # lost a race on the unique email index
        db.rollback()
        raise ValidationFailed("Email is already in use.")
    db.refresh(user)
    return user


def create_user(db: Session, data: schemas.UserCreate, settings: Settings):
    _ensure_email_free(db, data.email)
    user = models.User(
        name=data.name,
        email=data.email,
        password=hash_password(data.password, settings.bcrypt_rounds),
    )
    db.add(user)
    _commit_user(db, user)
    logger.info("Created user %s", user.id)
    return user


def update_user(db: Session, user: models.User, data: schemas.UserUpdate, settings: Settings):
    updates = data.model_dump(exclude_unset=True)
    if "email" in updates:
        _ensure_email_free(db, updates["email"], user.id)
    for field, value in updates.items():
        if field == "password":
            value = hash_password(value, settings.bcrypt_rounds)
        setattr(user, field, value)
    _commit_user(db, user)
    logger.info("Updated user %s (%s)", user.id, ", ".join(sorted(updates)))
    return user


def delete_user(db: Session, user: models.User):
    """Delete the user's recipes, then the user and its tokens.

    The two steps commit separately; a failure in between leaves the user
    in place without recipes. Returns a snapshot of the deleted user.
    """
    snapshot = schemas.User.model_validate(user)
    removed = (
        db.query(models.Recipe)
        .filter(models.Recipe.owner_id == snapshot.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    db.delete(user)
    db.commit()
    logger.info("Deleted user %s and %d recipe(s)", snapshot.id, removed)
    return snapshot


def authenticate(db: Session, email: str, password: str):
    user = get_user_by_email(db, email.strip().lower())
    if not user or not verify_password(password, user.password):
        logger.warning("Failed login attempt")
        raise ValidationFailed("Unable to login.")
    return user


# --- Session tokens ---


def issue_token(db: Session, user: models.User, settings: Settings) -> str:
    token = create_token(user.id, settings.jwt_secret, settings.jwt_expires_in)
    user.tokens.append(models.Token(token=token))
    db.commit()
    db.refresh(user)
    return token


def get_user_for_token(db: Session, user_id: int, token: str):
    return (
        db.query(models.User)
        .join(models.Token)
        .filter(models.User.id == user_id, models.Token.token == token)
        .first()
    )


def revoke_token(db: Session, user: models.User, token: str):
    user.tokens = [t for t in user.tokens if t.token != token]
    db.commit()
    logger.info("User %s logged out one session", user.id)


def revoke_all_tokens(db: Session, user: models.User):
    user.tokens = []
    db.commit()
    logger.info("User %s logged out all sessions", user.id)


# --- Recipes ---


def parse_sort(sort_by):
    """Turn ``field_direction`` into an order_by clause, or None."""
    if not sort_by:
        return None
    field, _, direction = sort_by.partition("_")
    column = SORTABLE.get(field)
    if column is None:
        return None
    return column.asc() if direction == "asc" else column.desc()


def get_recipe(db: Session, recipe_id: int, owner: models.User):
    return (
        db.query(models.Recipe)
        .filter(models.Recipe.id == recipe_id, models.Recipe.owner_id == owner.id)
        .first()
    )


def list_recipes(
    db: Session,
    owner: models.User,
    title=None,
    sort_by=None,
    limit=None,
    skip=None,
):
    q = db.query(models.Recipe).filter(models.Recipe.owner_id == owner.id)
    if title:
        q = q.filter(models.Recipe.title == title)
    order = parse_sort(sort_by)
    if order is not None:
        q = q.order_by(order, models.Recipe.id)
    else:
        q = q.order_by(models.Recipe.id)
    if skip:
        q = q.offset(skip)
    if limit:
        q = q.limit(limit)
    return q.all()


def create_recipe(db: Session, recipe: schemas.RecipeCreate, owner: models.User):
    db_recipe = models.Recipe(
        title=recipe.title,
        description=recipe.description,
        total_time=recipe.total_time,
        ingredients=list(recipe.ingredients),
        steps=list(recipe.steps),
        owner_id=owner.id,
    )
    db.add(db_recipe)
    db.commit()
    db.refresh(db_recipe)
    logger.info("User %s created recipe %s", owner.id, db_recipe.id)
    return db_recipe


def update_recipe(db: Session, db_recipe: models.Recipe, recipe: schemas.RecipeUpdate):
    updates = recipe.model_dump(exclude_unset=True)
    for field, value in updates.items():
        setattr(db_recipe, field, value)
    db.commit()
    db.refresh(db_recipe)
    logger.info("Updated recipe %s (%s)", db_recipe.id, ", ".join(sorted(updates)))
    return db_recipe


def delete_recipe(db: Session, recipe_id: int, owner: models.User):
    db_recipe = get_recipe(db, recipe_id, owner)
    if not db_recipe:
        return None
    snapshot = schemas.Recipe.model_validate(db_recipe)
    deleted = (
        db.query(models.Recipe)
        .filter(models.Recipe.id == recipe_id, models.Recipe.owner_id == owner.id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if not deleted:
        # another request removed it between the read and the delete
        return None
    logger.info("Deleted recipe %s", recipe_id)
    return snapshot
