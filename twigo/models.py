"""Data records exchanged between the HTTP layer and the document store."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, Mapping, Optional, TypeVar

from bson import ObjectId
from bson.errors import InvalidId

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
ZERO_ID_HEX = "0" * 24

T = TypeVar("T")


def format_time(value: datetime) -> str:
    """Render a timestamp as RFC 3339 with trailing fractional zeros trimmed."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    offset = value.utcoffset()
    if not offset:
        return text + "Z"
    minutes = int(offset.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    minutes = abs(minutes)
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def hex_id(oid: Optional[ObjectId]) -> str:
    """Hex form of an object id; a missing id renders as all zeros."""
    return str(oid) if oid is not None else ZERO_ID_HEX


def parse_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a hex object id; empty or null values give None."""
    if value is None or value == "":
        return None
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        raise ValueError(f"invalid object id: {value!r}")
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as exc:
        raise ValueError(f"invalid object id: {value!r}") from exc


def _load_mapping(data: Any) -> Mapping[str, Any]:
    if isinstance(data, (bytes, bytearray)):
        data = data.decode("utf-8")
    if isinstance(data, str):
        data = json.loads(data)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("expected a JSON object")
    return data


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _doc_string(doc: Mapping[str, Any], key: str) -> str:
    value = doc.get(key)
    if value is None:
        return ""
    if isinstance(value, ObjectId):
        return str(value)
    return str(value)


def _doc_time(doc: Mapping[str, Any], key: str) -> datetime:
    value = doc.get(key)
    return value if isinstance(value, datetime) else ZERO_TIME


def _encode(value: Any) -> Any:
    if hasattr(value, "to_json"):
        return value.to_json()
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


# (attribute, key) pairs; JSON and document keys coincide for users.
_USER_FIELDS = (
    ("nombre", "nombre"),
    ("apellidos", "apellidos"),
    ("fecha_nacimiento", "fecha_nacimiento"),
    ("email", "email"),
    ("password", "password"),
    ("avatar", "avatar"),
    ("banner", "banner"),
    ("biografia", "biografia"),
    ("ubicacion", "ubicacion"),
    ("sitio_web", "sitioweb"),
)
_ALWAYS_IN_JSON = {"email"}


@dataclass
class User:
    """A registered user."""

    id: Optional[ObjectId] = None
    nombre: str = ""
    apellidos: str = ""
    fecha_nacimiento: str = ""
    email: str = ""
    password: str = ""
    avatar: str = ""
    banner: str = ""
    biografia: str = ""
    ubicacion: str = ""
    sitio_web: str = ""

    @classmethod
    def from_json(cls, data: Any) -> "User":
        """Build a user from a JSON body (text, bytes or a parsed mapping)."""
        mapping = _load_mapping(data)
        values = {attr: _string(mapping, key) for attr, key in _USER_FIELDS}
        return cls(id=parse_object_id(mapping.get("id")), **values)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "User":
        values = {attr: _doc_string(doc, key) for attr, key in _USER_FIELDS}
        oid = doc.get("_id")
        return cls(id=oid if isinstance(oid, ObjectId) else None, **values)

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {}
        if self.id is not None:
            doc["_id"] = self.id
        for attr, key in _USER_FIELDS:
            doc[key] = getattr(self, attr)
        return doc

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": hex_id(self.id)}
        for attr, key in _USER_FIELDS:
            value = getattr(self, attr)
            if value or key in _ALWAYS_IN_JSON:
                out[key] = value
        return out


@dataclass
class Claim:
    """Claims carried by an access token."""

    email: str = ""
    id: Optional[ObjectId] = None
    expires_at: Optional[int] = None

    @property
    def user_id(self) -> str:
        return hex_id(self.id)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Claim":
        exp = payload.get("exp")
        if exp is not None and not isinstance(exp, (int, float)):
            raise ValueError("field 'exp' must be a number")
        return cls(
            email=_string(payload, "email"),
            id=parse_object_id(payload.get("_id")),
            expires_at=int(exp) if exp is not None else None,
        )


@dataclass
class NewPost:
    """A post about to be stored."""

    user_id: str = ""
    message: str = ""
    date: datetime = ZERO_TIME

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.user_id:
            out["user_id"] = self.user_id
        if self.message:
            out["message"] = self.message
        out["date"] = format_time(self.date)
        return out


@dataclass
class Product:
    """A product about to be stored."""

    product: str = ""
    date: datetime = ZERO_TIME

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.product:
            out["product"] = self.product
        out["date"] = format_time(self.date)
        return out


@dataclass
class PostRecord:
    """A stored post as listed for a user."""

    id: Optional[ObjectId] = None
    user_id: str = ""
    content: str = ""
    date: datetime = ZERO_TIME

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "PostRecord":
        oid = doc.get("_id")
        return cls(
            id=oid if isinstance(oid, ObjectId) else None,
            user_id=_doc_string(doc, "userid"),
            content=_doc_string(doc, "message"),
            date=_doc_time(doc, "date"),
        )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"_id": hex_id(self.id)}
        if self.user_id:
            out["author_id"] = self.user_id
        if self.content:
            out["content"] = self.content
        out["date"] = format_time(self.date)
        return out


@dataclass
class ProductRecord:
    """A stored product."""

    id: Optional[ObjectId] = None
    product: str = ""
    date: datetime = ZERO_TIME

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "ProductRecord":
        oid = doc.get("_id")
        return cls(
            id=oid if isinstance(oid, ObjectId) else None,
            product=_doc_string(doc, "product"),
            date=_doc_time(doc, "date"),
        )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"_id": hex_id(self.id)}
        if self.product:
            out["product"] = self.product
        out["date"] = format_time(self.date)
        return out


@dataclass
class FriendPost:
    """A followed user's post joined with the relationship that reaches it."""

    id: Optional[ObjectId] = None
    user_id: str = ""
    friend_id: str = ""
    post_id: str = ""
    post_date: datetime = ZERO_TIME
    post_message: str = ""

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "FriendPost":
        oid = doc.get("_id")
        post = doc.get("post") or {}
        return cls(
            id=oid if isinstance(oid, ObjectId) else None,
            user_id=_doc_string(doc, "userid"),
            friend_id=_doc_string(doc, "friendid"),
            post_id=_doc_string(post, "_id"),
            post_date=_doc_time(post, "date"),
            post_message=_doc_string(post, "message"),
        )

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {"_id": hex_id(self.id)}
        if self.user_id:
            out["userId"] = self.user_id
        if self.friend_id:
            out["friendId"] = self.friend_id
        post: dict[str, Any] = {}
        if self.post_id:
            post["_id"] = self.post_id
        post["date"] = format_time(self.post_date)
        if self.post_message:
            post["message"] = self.post_message
        out["Post"] = post
        return out


@dataclass
class Relationship:
    """A follow link from one user to another."""

    user_id: str = ""
    friend_id: str = ""

    def to_document(self) -> dict[str, Any]:
        return {"userid": self.user_id, "friendid": self.friend_id}


@dataclass
class Image:
    """Public locations of an uploaded avatar or banner."""

    avatar: str = ""
    banner: str = ""

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.avatar:
            out["avatar"] = self.avatar
        if self.banner:
            out["banner"] = self.banner
        return out


@dataclass
class LoginResponse:
    """The token handed out on a successful login."""

    token: str = ""

    def to_json(self) -> dict[str, Any]:
        return {"token": self.token} if self.token else {}


@dataclass
class ApiResponse(Generic[T]):
    """Outcome of a request handler: HTTP status, message and payload."""

    status: int = 0
    message: str = ""
    data: Optional[T] = field(default=None)

    def to_json(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.status:
            out["status"] = self.status
        if self.message:
            out["message"] = self.message
        data = self.data
        empty = isinstance(data, (str, list, tuple, dict)) and not data
        if data is not None and not empty:
            out["data"] = _encode(data)
        return out