import json
from pathlib import Path

import jwt
import pytest
from bson import ObjectId

from twigo import handlers
from twigo.db import NotFoundError, StoreError
from twigo.models import Claim, FriendPost, ProductRecord, Relationship, User


class FakeStore:
    def __init__(self):
        self.fail = False
        self.posts = []
        self.products = []
        self.relationships = []
        self.friend_posts = []
        self.users = {}
        self.calls = []
        self.updates = []

    def _check(self):
        if self.fail:
            raise StoreError("boom")

    def add_post(self, post):
        self._check()
        self.posts.append(post)
        return str(ObjectId())

    def add_product(self, product):
        self._check()
        self.products.append(product)
        return str(ObjectId())

    def add_relationship(self, relationship):
        self._check()
        self.relationships.append(relationship)

    def delete_post(self, post_id, user_id):
        self._check()
        raise NotFoundError("post not found")

    def delete_relationship(self, relationship):
        self._check()
        self.relationships.remove(relationship)

    def get_friends_posts(self, user_id, page):
        self._check()
        if page < 1:
            raise StoreError("bad page")
        self.calls.append((user_id, page))
        return list(self.friend_posts)

    def get_posts(self, user_id, page):
        self._check()
        self.calls.append((user_id, page))
        return []

    def get_products(self):
        self._check()
        return [ProductRecord(product="cake")]

    def get_profile(self, user_id):
        for user in self.users.values():
            if str(user.id) == user_id:
                return user
        raise NotFoundError("missing")

    def has_relationship(self, relationship):
        return relationship in self.relationships

    def get_users(self, user_id, page, search, user_type):
        self._check()
        self.calls.append((user_id, page, search, user_type))
        return []

    def add_registry(self, user):
        self._check()
        self.users[user.email] = user
        return str(ObjectId())

    def login(self, email, password):
        user = self.users.get(email)
        if user is None or user.password != password:
            return None
        return user

    def update_user(self, user, user_id):
        self._check()
        self.updates.append((user, user_id))
        return user

    def find_user(self, email):
        return self.users.get(email)


class FakeUpload:
    def __init__(self, filename, content):
        self.filename = filename
        self.content = content

    def save(self, dst):
        Path(dst).write_bytes(self.content)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def claim():
    return Claim(email="ana@example.com", id=ObjectId())


def test_add_post_success(store, claim):
    r = handlers.add_post(store, json.dumps({"message": "hello"}), claim)
    assert r.status == 200
    assert r.message == "post added correctly"
    assert r.data.user_id == claim.user_id
    assert r.data.message == "hello"
    assert store.posts == [r.data]


def test_add_post_bad_body(store, claim):
    r = handlers.add_post(store, b"not json", claim)
    assert r.status == 400
    assert r.message.startswith("error trying to read the request body ")
    assert store.posts == []


def test_add_post_store_error(store, claim):
    store.fail = True
    r = handlers.add_post(store, "{}", claim)
    assert r.message == "error trying to add the post boom"


def test_add_product_success(store):
    r = handlers.add_product(store, json.dumps({"product": "cake"}))
    assert r.status == 200
    assert r.message == "product added correctly"
    assert store.products[0].product == "cake"


def test_add_relationship(store, claim):
    assert handlers.add_relationship(store, {}, claim).message == "id is required"
    r = handlers.add_relationship(store, {"id": "friend"}, claim)
    assert r.status == 200
    assert r.message == "Friend added"
    assert store.relationships == [Relationship(claim.user_id, "friend")]


def test_add_relationship_error(store, claim):
    store.fail = True
    r = handlers.add_relationship(store, {"id": "friend"}, claim)
    assert r.message == "have been an error adding friend: boom"


def test_delete_post(store, claim):
    assert handlers.delete_post(store, {}, claim).message == "id is required"
    r = handlers.delete_post(store, {"id": "abc"}, claim)
    assert r.status == 400
    assert r.message == "Error trying to delete post: post not found"


def test_delete_relationship(store, claim):
    missing = handlers.delete_relationship(store, {}, claim)
    assert (missing.status, missing.message) == (0, "id parameter is mandatory")
    store.relationships.append(Relationship(claim.user_id, "friend"))
    r = handlers.delete_relationship(store, {"id": "friend"}, claim)
    assert r.status == 200
    assert r.message == "Friend deleted successfully"
    assert store.relationships == []


def test_friends_posts_empty_and_errors(store, claim):
    assert handlers.get_friends_posts(store, {}, claim).message == "No post found"
    assert store.calls == [(claim.user_id, 1)]
    bad = handlers.get_friends_posts(store, {"page": "x"}, claim)
    assert bad.message == "page must be a number bigger than zero"
    zero = handlers.get_friends_posts(store, {"page": "0"}, claim)
    assert zero.message == "Error getting posts"


def test_friends_posts_found(store, claim):
    store.friend_posts = [FriendPost(user_id=claim.user_id, friend_id="f")]
    r = handlers.get_friends_posts(store, {"page": "2"}, claim)
    assert r.status == 200
    assert r.data == store.friend_posts
    assert store.calls[-1] == (claim.user_id, 2)


def test_get_posts(store):
    assert handlers.get_posts(store, {}).message == "ID parameter is mandatory"
    r = handlers.get_posts(store, {"id": "u1"})
    assert r.status == 200
    assert store.calls == [("u1", 1)]


def test_get_products(store):
    r = handlers.get_products(store)
    assert r.status == 200
    assert [p.product for p in r.data] == ["cake"]
    store.fail = True
    assert handlers.get_products(store).message == "Error getting products"


def test_get_profile(store):
    user = User(id=ObjectId(), email="ana@example.com")
    store.users[user.email] = user
    assert handlers.get_profile(store, {}).message == "El id es requerido"
    assert handlers.get_profile(store, {"id": str(user.id)}).data is user
    missing = handlers.get_profile(store, {"id": str(ObjectId())})
    assert missing.message == "Error al buscar el perfil missing"


def test_get_relationship(store, claim):
    assert handlers.get_relationship(store, {"id": "f"}, claim).message == "false"
    store.relationships.append(Relationship(claim.user_id, "f"))
    r = handlers.get_relationship(store, {"id": "f"}, claim)
    assert (r.status, r.message) == (200, "true")


def test_get_users(store, claim):
    r = handlers.get_users(store, {"search": "an", "type": "new"}, claim)
    assert r.status == 200
    assert store.calls == [(claim.user_id, 1, "an", "new")]
    bad = handlers.get_users(store, {"page": "1.5"}, claim)
    assert bad.message.startswith("Page must be an int bigger than zero")


def test_login_success(store):
    password = "password"
    user = User(id=ObjectId(), email="ana@example.com", password=password)
    store.users[user.email] = user
    body = json.dumps({"email": user.email, "password": password})
    r = handlers.login(store, body, "secret")
    assert r.status == 200
    payload = jwt.decode(r.data.token, "secret", algorithms=["HS256"])
    assert payload["email"] == user.email


def test_login_failures(store):
    assert handlers.login(store, "{}", "secret").message == "El email es requerido"
    r = handlers.login(store, json.dumps({"email": "x@example.com"}), "secret")
    assert r.message == "Usuario o contraseña incorrectos"
    assert handlers.login(store, "[", "secret").message.startswith(
        "Usuario o contraseña incorrectos "
    )


def test_register(store):
    password = "password"
    short_password = "token"
    assert handlers.register(store, "{}").message == "Email no puede estar vacio"
    short_body = json.dumps({"email": "a@example.com", "password": short_password})
    short = handlers.register(store, short_body)
    assert short.message == "Debe especificar una contraseña de al menos 6 caracteres"
    body = json.dumps({"email": "a@example.com", "password": password})
    ok = handlers.register(store, body)
    assert (ok.status, ok.message) == (200, "Usuario creado correctamente")
    assert "a@example.com" in store.users
    again = handlers.register(store, body)
    assert again.message == "El usuario ya existe con ese email"


def test_update_user(store, claim):
    r = handlers.update_user(store, json.dumps({"nombre": "Eva"}), claim)
    assert r.message == "Usuario actualizado correctamente"
    assert store.updates[0][0].nombre == "Eva"
    assert store.updates[0][1] == claim.user_id
    store.fail = True
    assert handlers.update_user(store, "{}", claim).message == "Error al actualizar el usuario boom"


def test_upload_avatar(store, claim, tmp_path):
    files = {"A": FakeUpload("me.png", b"img")}
    r = handlers.upload_image(store, files, "A", claim, "http://localhost", tmp_path)
    saved = tmp_path / "public" / "images" / "avatars" / (claim.user_id + ".png")
    assert saved.read_bytes() == b"img"
    assert r.message == "avatar uploaded"
    assert r.data.avatar == "http://localhost/images/avatars/" + claim.user_id + ".png"
    assert store.updates[0][0].avatar == r.data.avatar


def test_upload_banner_and_missing(store, claim, tmp_path):
    missing = handlers.upload_image(store, {}, "B", claim, "", tmp_path)
    assert missing.status == 400
    assert missing.message.startswith("No file uploaded")
    files = {"B": FakeUpload("wide.jpg", b"x")}
    r = handlers.upload_image(store, files, "B", claim, "", tmp_path)
    assert r.message == "banner uploaded"
    assert r.data.banner.endswith("/images/banners/" + claim.user_id + ".jpg")
    assert r.data.avatar == ""