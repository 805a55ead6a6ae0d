"""Request handlers: each turns request input into an ApiResponse."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

from .db import StoreError
from .models import (
    ApiResponse,
    Claim,
    FriendPost,
    Image,
    LoginResponse,
    NewPost,
    PostRecord,
    Product,
    ProductRecord,
    Relationship,
    User,
)
from .tokens import TokenError, generate_jwt

_INTEGER = re.compile(r"[+-]?[0-9]+")
_MIN_PASSWORD_BYTES = 6
_UPLOAD_DIRS = {"A": "avatars", "B": "banners"}


def _load_object(body: Any) -> Mapping[str, Any]:
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    data = json.loads(body)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("cannot unmarshal a non-object body")
    return data


def _text_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _query(query: Mapping[str, str], key: str) -> str:
    return query.get(key) or ""


def _parse_page(text: str) -> int:
    if not text:
        text = "1"
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"parsing {json.dumps(text)}: invalid syntax")
    return int(text)


def _extension(filename: str) -> str:
    name = filename.rsplit("/", 1)[-1]
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def add_post(store: Any, body: Any, claim: Claim) -> ApiResponse[NewPost]:
    r: ApiResponse[NewPost] = ApiResponse(status=400)
    try:
        message = _text_field(_load_object(body), "message")
    except ValueError as exc:
        r.message = "error trying to read the request body " + str(exc)
        return r
    register_ = NewPost(
        user_id=claim.user_id, message=message, date=datetime.now(timezone.utc)
    )
    try:
        store.add_post(register_)
    except StoreError as exc:
        r.message = "error trying to add the post " + str(exc)
        return r
    r.status = 200
    r.message = "post added correctly"
    r.data = register_
    return r


def add_product(store: Any, body: Any) -> ApiResponse[Product]:
    r: ApiResponse[Product] = ApiResponse(status=400)
    try:
        name = _text_field(_load_object(body), "product")
    except ValueError as exc:
        r.message = "error trying to read the request body " + str(exc)
        return r
    product = Product(product=name, date=datetime.now(timezone.utc))
    try:
        store.add_product(product)
    except StoreError as exc:
        r.message = "error trying to add the post " + str(exc)
        return r
    r.status = 200
    r.message = "product added correctly"
    r.data = product
    return r


def add_relationship(store: Any, query: Mapping[str, str], claim: Claim) -> ApiResponse[str]:
    r: ApiResponse[str] = ApiResponse(status=400)
    friend_id = _query(query, "id")
    if not friend_id:
        r.message = "id is required"
        return r
    try:
        store.add_relationship(Relationship(user_id=claim.user_id, friend_id=friend_id))
    except StoreError as exc:
        r.message = "have been an error adding friend: " + str(exc)
        return r
    r.status = 200
    r.message = "Friend added"
    return r


def delete_post(store: Any, query: Mapping[str, str], claim: Claim) -> ApiResponse[str]:
    r: ApiResponse[str] = ApiResponse(status=400)
    post_id = _query(query, "id")
    if not post_id:
        r.message = "id is required"
        return r
    try:
        store.delete_post(post_id, claim.user_id)
    except StoreError as exc:
        r.message = "Error trying to delete post: " + str(exc)
        return r
    r.status = 200
    r.message = "Post Deleted"
    return r


def delete_relationship(store: Any, query: Mapping[str, str], claim: Claim) -> ApiResponse[str]:
    r: ApiResponse[str] = ApiResponse()
    friend_id = _query(query, "id")
    if not friend_id:
        r.message = "id parameter is mandatory"
        return r
    try:
        store.delete_relationship(Relationship(user_id=claim.user_id, friend_id=friend_id))
    except StoreError as exc:
        r.message = "Error trying to delete friend: " + str(exc)
        return r
    r.status = 200
    r.message = "Friend deleted successfully"
    return r


def get_friends_posts(
    store: Any, query: Mapping[str, str], claim: Claim
) -> ApiResponse[list[FriendPost]]:
    r: ApiResponse[list[FriendPost]] = ApiResponse(status=400)
    try:
        page = _parse_page(_query(query, "page"))
    except ValueError:
        r.message = "page must be a number bigger than zero"
        return r
    try:
        posts = store.get_friends_posts(claim.user_id, page)
    except StoreError:
        r.message = "Error getting posts"
        return r
    if not posts:
        r.message = "No post found"
        return r
    r.status = 200
    r.data = posts
    return r


def get_posts(store: Any, query: Mapping[str, str]) -> ApiResponse[list[PostRecord]]:
    r: ApiResponse[list[PostRecord]] = ApiResponse(status=400)
    user_id = _query(query, "id")
    if not user_id:
        r.message = "ID parameter is mandatory"
        return r
    try:
        page = _parse_page(_query(query, "page"))
    except ValueError:
        r.message = "page must be a number bigger than zero"
        return r
    try:
        posts = store.get_posts(user_id, page)
    except StoreError:
        r.message = "Error getting posts"
        return r
    r.status = 200
    r.data = posts
    return r


def get_products(store: Any) -> ApiResponse[list[ProductRecord]]:
    r: ApiResponse[list[ProductRecord]] = ApiResponse(status=400)
    try:
        products = store.get_products()
    except StoreError:
        r.message = "Error getting products"
        return r
    r.status = 200
    r.data = products
    return r


def get_profile(store: Any, query: Mapping[str, str]) -> ApiResponse[User]:
    r: ApiResponse[User] = ApiResponse(status=400)
    user_id = _query(query, "id")
    if not user_id:
        r.message = "El id es requerido"
        return r
    try:
        profile = store.get_profile(user_id)
    except StoreError as exc:
        r.message = "Error al buscar el perfil " + str(exc)
        return r
    r.status = 200
    r.data = profile
    return r


def get_relationship(store: Any, query: Mapping[str, str], claim: Claim) -> ApiResponse[str]:
    r: ApiResponse[str] = ApiResponse()
    friend_id = _query(query, "id")
    if not friend_id:
        r.message = "id parameter is mandatory"
        return r
    exists = store.has_relationship(Relationship(user_id=claim.user_id, friend_id=friend_id))
    r.status = 200
    r.message = json.dumps(bool(exists))
    return r


def get_users(store: Any, query: Mapping[str, str], claim: Claim) -> ApiResponse[list[User]]:
    r: ApiResponse[list[User]] = ApiResponse(status=400)
    try:
        page = _parse_page(_query(query, "page"))
    except ValueError as exc:
        r.message = "Page must be an int bigger than zero" + str(exc)
        return r
    try:
        users = store.get_users(
            claim.user_id, page, _query(query, "search"), _query(query, "type")
        )
    except StoreError:
        r.message = "Error getting users"
        return r
    r.status = 200
    r.data = users
    return r


def login(store: Any, body: Any, secret: str) -> ApiResponse[LoginResponse]:
    r: ApiResponse[LoginResponse] = ApiResponse(status=400)
    try:
        credentials = User.from_json(body)
    except ValueError as exc:
        r.message = "Usuario o contraseña incorrectos " + str(exc)
        return r
    if not credentials.email:
        r.message = "El email es requerido"
        return r
    user: Optional[User] = store.login(credentials.email, credentials.password)
    if user is None:
        r.message = "Usuario o contraseña incorrectos"
        return r
    try:
        token = generate_jwt(user, secret)
    except TokenError as exc:
        r.message = "Error al generar el token " + str(exc)
        return r
    r.status = 200
    r.data = LoginResponse(token=token)
    return r


def register(store: Any, body: Any) -> ApiResponse[User]:
    r: ApiResponse[User] = ApiResponse(status=400)
    try:
        user = User.from_json(body)
    except ValueError as exc:
        r.message = str(exc)
        return r
    if not user.email:
        r.message = "Email no puede estar vacio"
        return r
    if len(user.password.encode("utf-8")) < _MIN_PASSWORD_BYTES:
        r.message = "Debe especificar una contraseña de al menos 6 caracteres"
        return r
    if store.find_user(user.email) is not None:
        r.message = "El usuario ya existe con ese email"
        return r
    try:
        store.add_registry(user)
    except StoreError as exc:
        r.message = "Ocurrio un error al intentar realizar el registro del usuario " + str(exc)
        return r
    r.status = 200
    r.message = "Usuario creado correctamente"
    return r


def update_user(store: Any, body: Any, claim: Claim) -> ApiResponse[User]:
    r: ApiResponse[User] = ApiResponse(status=400)
    try:
        changes = User.from_json(body)
    except ValueError as exc:
        r.message = "Error al leer el cuerpo de la petición " + str(exc)
        return r
    try:
        profile = store.update_user(changes, claim.user_id)
    except StoreError as exc:
        r.message = "Error al actualizar el usuario " + str(exc)
        return r
    r.status = 200
    r.message = "Usuario actualizado correctamente"
    r.data = profile
    return r


def upload_image(
    store: Any,
    files: Mapping[str, Any],
    upload_type: str,
    claim: Claim,
    base_path: str,
    root: Any = ".",
) -> ApiResponse[Image]:
    """Save an avatar ("A") or banner ("B") upload and record its public URL.

    ``files`` maps form field names to uploads having ``filename`` and
    ``save(path)``; the upload is read from the field named by ``upload_type``.
    """
    r: ApiResponse[Image] = ApiResponse(status=400)
    upload = files.get(upload_type)
    if upload is None:
        r.message = "No file uploaded no such file"
        return r
    folder = _UPLOAD_DIRS.get(upload_type)
    if folder is None:
        r.message = f"upload file err: unknown upload type {upload_type!r}"
        return r
    user_id = claim.user_id
    name = user_id + _extension(upload.filename or "")
    target = Path(root) / "public" / "images" / folder / name
    url = f"{base_path}/images/{folder}/{name}"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        upload.save(str(target))
    except OSError as exc:
        r.message = "upload file err: " + str(exc)
        return r
    user = User(avatar=url) if upload_type == "A" else User(banner=url)
    try:
        store.update_user(user, user_id)
    except StoreError as exc:
        r.message = "Error al actualizar el usuario " + str(exc)
        return r
    r.status = 200
    if upload_type == "A":
        r.message = "avatar uploaded"
        r.data = Image(avatar=url)
    else:
        r.message = "banner uploaded"
        r.data = Image(banner=url)
    return r