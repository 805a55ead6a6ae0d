"""Document-store access for users, posts, products and relationships."""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional

import bcrypt
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import PyMongoError

from .models import (
    FriendPost,
    NewPost,
    PostRecord,
    Product,
    ProductRecord,
    Relationship,
    User,
)

PAGE_SIZE = 20
POSTS_LIMIT = 10
BCRYPT_COST = 8
_BCRYPT_MAX_BYTES = 72
_NO_DOCUMENTS = "mongo: no documents in result"


class StoreError(Exception):
    """A database operation failed."""


class NotFoundError(StoreError):
    """The requested document does not exist."""


@contextmanager
def _database_errors() -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        raise StoreError(str(exc)) from exc


def _object_id(value: str) -> ObjectId:
    """Parse a hex id, falling back to the all-zero id when it is malformed."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return ObjectId(b"\x00" * 12)


def _skip(page: int) -> int:
    if page < 1:
        raise StoreError(f"invalid page {page}")
    return (page - 1) * PAGE_SIZE


def encrypt_password(password: str) -> str:
    """Hash a password with bcrypt at the configured cost."""
    raw = password.encode("utf-8")
    if len(raw) > _BCRYPT_MAX_BYTES:
        raise StoreError("bcrypt: password length exceeds 72 bytes")
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=BCRYPT_COST)).decode("ascii")


def connect(environ: Optional[Mapping[str, str]] = None) -> "Store":
    """Connect to the cluster named by the environment and check it answers."""
    env = os.environ if environ is None else environ
    uri = "mongodb+srv://{}:{}@{}/?retryWrites=true&w=majority".format(
        env.get("DB_USERNAME", ""), env.get("DB_PASSWORD", ""), env.get("DB_HOST", "")
    )
    try:
        client = MongoClient(uri)
        client.admin.command("ping")
        database = client[env.get("DB_NAME", "")]
    except PyMongoError as exc:
        print("Error al conectar a la base de datos: " + str(exc))
        raise StoreError(str(exc)) from exc
    print("Conexión exitosa a la base de datos")
    return Store(database)


class Store:
    """Operations over one database."""

    def __init__(self, database: Any) -> None:
        self._database = database
        self._users = database["users"]
        self._posts = database["posts"]
        self._products = database["products"]
        self._relationships = database["relationship"]

    def check_connection(self) -> bool:
        try:
            self._database.command("ping")
        except PyMongoError:
            return False
        return True

    def add_post(self, post: NewPost) -> str:
        """Store a post and return its id in hex."""
        with _database_errors():
            result = self._posts.insert_one(
                {"userid": post.user_id, "message": post.message, "date": post.date}
            )
        return str(result.inserted_id)

    def add_product(self, product: Product) -> str:
        """Store a product and return its id in hex."""
        with _database_errors():
            result = self._products.insert_one({"product": product.product, "date": product.date})
        return str(result.inserted_id)

    def add_relationship(self, relationship: Relationship) -> None:
        with _database_errors():
            self._relationships.insert_one(relationship.to_document())

    def delete_post(self, post_id: str, user_id: str) -> None:
        """Delete a post owned by the user; raise NotFoundError if none matched."""
        condition = {"_id": _object_id(post_id), "userid": user_id}
        with _database_errors():
            result = self._posts.delete_one(condition)
        if result.deleted_count == 0:
            raise NotFoundError("post not found")

    def delete_relationship(self, relationship: Relationship) -> None:
        with _database_errors():
            self._relationships.delete_one(relationship.to_document())

    def get_friends_posts(self, user_id: str, page: int) -> list[FriendPost]:
        """Posts of followed users, newest first, one page of twenty."""
        pipeline = [
            {"$match": {"userid": user_id}},
            {
                "$lookup": {
                    "from": "posts",
                    "localField": "friendid",
                    "foreignField": "userid",
                    "as": "post",
                }
            },
            {"$unwind": "$post"},
            {"$sort": {"post.date": -1}},
            {"$skip": _skip(page)},
            {"$limit": PAGE_SIZE},
        ]
        with _database_errors():
            return [FriendPost.from_document(doc) for doc in self._relationships.aggregate(pipeline)]

    def get_posts(self, user_id: str, page: int) -> list[PostRecord]:
        """A user's posts, newest first."""
        skip = _skip(page)
        with _database_errors():
            cursor = self._posts.find(
                {"userid": user_id}, sort=[("date", -1)], skip=skip, limit=POSTS_LIMIT
            )
            return [PostRecord.from_document(doc) for doc in cursor]

    def get_products(self) -> list[ProductRecord]:
        with _database_errors():
            return [ProductRecord.from_document(doc) for doc in self._products.find({})]

    def get_profile(self, user_id: str) -> User:
        """Load a user by hex id, with the password hash cleared."""
        with _database_errors():
            doc = self._users.find_one({"_id": _object_id(user_id)})
        if doc is None:
            raise NotFoundError(_NO_DOCUMENTS)
        user = User.from_document(doc)
        user.password = ""
        return user

    def has_relationship(self, relationship: Relationship) -> bool:
        condition = {"userid": relationship.user_id, "friendid": relationship.friend_id}
        try:
            return self._relationships.find_one(condition) is not None
        except PyMongoError:
            return False

    def get_users(self, user_id: str, page: int, search: str, user_type: str) -> list[User]:
        """Users whose name matches, filtered by whether the caller follows them.

        ``user_type`` "new" keeps users not yet followed, "follow" keeps followed
        ones; the caller never appears in the result.
        """
        skip = _skip(page)
        found: list[User] = []
        with _database_errors():
            cursor = self._users.find(
                {"nombre": {"$regex": "(?i)" + search}}, skip=skip, limit=PAGE_SIZE
            )
            for doc in cursor:
                user = User.from_document(doc)
                friend_id = str(user.id) if user.id is not None else ""
                follows = self.has_relationship(Relationship(user_id, friend_id))
                include = (user_type == "new" and not follows) or (
                    user_type == "follow" and follows
                )
                if include and friend_id != user_id:
                    user.password = ""
                    found.append(user)
        return found

    def add_registry(self, user: User) -> str:
        """Store a new user with its password hashed; return the new id in hex."""
        doc = user.to_document()
        doc["password"] = encrypt_password(user.password)
        with _database_errors():
            result = self._users.insert_one(doc)
        return str(result.inserted_id)

    def login(self, email: str, password: str) -> Optional[User]:
        """The user with these credentials, or None."""
        user = self.find_user(email)
        if user is None:
            return None
        try:
            matches = bcrypt.checkpw(password.encode("utf-8"), user.password.encode("utf-8"))
        except ValueError:
            return None
        return user if matches else None

    def update_user(self, user: User, user_id: str) -> User:
        """Apply the non-empty profile fields and return the updated user."""
        changes: dict[str, Any] = {}
        if user.nombre:
            changes["nombre"] = user.nombre
        if user.apellidos:
            changes["apellidos"] = user.apellidos
        changes["fecha_nacimiento"] = user.fecha_nacimiento
        if user.avatar:
            changes["avatar"] = user.avatar
        if user.banner:
            changes["banner"] = user.banner
        if user.biografia:
            changes["biografia"] = user.biografia
        if user.ubicacion:
            changes["ubicacion"] = user.ubicacion
        if user.sitio_web:
            changes["sitio_web"] = user.sitio_web
        with _database_errors():
            doc = self._users.find_one_and_update(
                {"_id": {"$eq": _object_id(user_id)}},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            raise NotFoundError(_NO_DOCUMENTS)
        return User.from_document(doc)

    def find_user(self, email: str) -> Optional[User]:
        """The user registered with this e-mail, or None."""
        try:
            doc = self._users.find_one({"email": email})
        except PyMongoError:
            return None
        return User.from_document(doc) if doc is not None else None