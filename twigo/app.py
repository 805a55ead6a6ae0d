"""HTTP application: routes, token checking and the command that serves them."""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, Response, g, request, send_from_directory

from . import handlers
from .db import StoreError, connect
from .models import LoginResponse, User
from .tokens import TokenError, process_token

_PUBLIC_ENDPOINTS = frozenset(
    {"ping", "products", "health_check", "register", "login", "images"}
)
_COOKIE_MAX_AGE = 24 * 60 * 60
_DEFAULT_HTTP_PORT = 80


@dataclass
class Settings:
    """Runtime configuration taken from the environment."""

    site_title: str = ""
    address: str = ""
    jwt_sign: str = ""
    domain: str = ""
    base_path: str = ""
    root: str = "."

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            site_title=env.get("SITE_TITLE", ""),
            address=env.get("PORT", ""),
            jwt_sign=env.get("JWTSIGN", ""),
            domain=env.get("DOMAIN", ""),
            base_path=env.get("BASEPATH", ""),
        )


def _split_address(address: str) -> tuple[str, int]:
    """Turn a listen address such as ":8080" into a host and a port."""
    if not address:
        return "0.0.0.0", _DEFAULT_HTTP_PORT
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address}: missing port in address")
    return host or "0.0.0.0", int(port) if port else _DEFAULT_HTTP_PORT


def _encode(value: Any) -> Any:
    if hasattr(value, "to_json"):
        return value.to_json()
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    return value


def _payload(data: Any, zero: Any = None) -> Any:
    """Encode handler data; missing or empty results fall back to ``zero``."""
    if data is None or (isinstance(data, (list, tuple)) and not data):
        data = zero
    return _encode(data)


def _json(status: int, value: Any) -> Response:
    body = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    # An unset status is written as 200.
    return Response(body, status=status or 200, mimetype="application/json")


def create_app(store: Any, settings: Optional[Settings] = None) -> Flask:
    """Build the web application over a store."""
    settings = settings or Settings()
    app = Flask(__name__, static_folder=None)
    images_dir = Path(settings.root) / "public" / "images"

    @app.before_request
    def _authenticate() -> Optional[Response]:
        if request.endpoint in _PUBLIC_ENDPOINTS:
            return None
        header = request.headers.get("Authorization", "")
        if not header:
            return _json(401, {"message": "token not found"})
        try:
            claim = process_token(header, settings.jwt_sign, store)
        except TokenError as exc:
            return _json(401, {"message": "", "error": str(exc)})
        if claim is None:
            return _json(401, {"message": ""})
        g.claim = claim
        return None

    @app.get("/ping", endpoint="ping")
    def _ping() -> Response:
        return Response("pong", status=200, mimetype="text/plain")

    @app.get("/products", endpoint="products")
    def _products() -> Response:
        resp = handlers.get_products(store)
        return _json(resp.status, _payload(resp.data))

    @app.get("/health-check", endpoint="health_check")
    def _health_check() -> Response:
        return Response("ok", status=200, mimetype="text/plain")

    @app.post("/register", endpoint="register")
    def _register() -> Response:
        resp = handlers.register(store, request.get_data())
        return _json(resp.status, resp.message)

    @app.post("/login", endpoint="login")
    def _login() -> Response:
        resp = handlers.login(store, request.get_data(), settings.jwt_sign)
        response = _json(resp.status, _payload(resp.data, LoginResponse()))
        if resp.status == 200 and resp.data is not None:
            response.set_cookie(
                "token",
                resp.data.token,
                max_age=_COOKIE_MAX_AGE,
                path="/",
                domain=settings.domain or None,
                secure=False,
                httponly=True,
            )
            response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    @app.get("/images/<path:filename>", endpoint="images")
    def _images(filename: str) -> Response:
        return send_from_directory(images_dir.resolve(), filename)

    @app.get("/profile", endpoint="profile")
    def _profile() -> Response:
        resp = handlers.get_profile(store, request.args)
        return _json(resp.status, _payload(resp.data, User()))

    @app.get("/users", endpoint="users")
    def _users() -> Response:
        resp = handlers.get_users(store, request.args, g.claim)
        return _json(200, _payload(resp.data))

    @app.put("/user", endpoint="user_update")
    def _user_update() -> Response:
        resp = handlers.update_user(store, request.get_data(), g.claim)
        return _json(resp.status, resp.to_json())

    @app.post("/post", endpoint="post_create")
    def _post_create() -> Response:
        resp = handlers.add_post(store, request.get_data(), g.claim)
        return _json(resp.status, resp.to_json())

    @app.post("/product", endpoint="product_create")
    def _product_create() -> Response:
        resp = handlers.add_product(store, request.get_data())
        return _json(resp.status, resp.to_json())

    @app.get("/posts", endpoint="posts")
    def _posts() -> Response:
        resp = handlers.get_posts(store, request.args)
        return _json(resp.status, _payload(resp.data))

    @app.get("/friendsposts", endpoint="friends_posts")
    def _friends_posts() -> Response:
        resp = handlers.get_friends_posts(store, request.args, g.claim)
        return _json(resp.status, resp.to_json())

    @app.delete("/post", endpoint="post_delete")
    def _post_delete() -> Response:
        resp = handlers.delete_post(store, request.args, g.claim)
        return _json(resp.status, resp.message)

    @app.post("/upload/avatar", endpoint="upload_avatar")
    def _upload_avatar() -> Response:
        resp = handlers.upload_image(
            store, request.files, "A", g.claim, settings.base_path, settings.root
        )
        return _json(resp.status, resp.to_json())

    @app.post("/upload/banner", endpoint="upload_banner")
    def _upload_banner() -> Response:
        resp = handlers.upload_image(
            store, request.files, "B", g.claim, settings.base_path, settings.root
        )
        return _json(resp.status, resp.to_json())

    @app.post("/addfriend", endpoint="add_friend")
    def _add_friend() -> Response:
        resp = handlers.add_relationship(store, request.args, g.claim)
        return _json(resp.status, resp.to_json())

    @app.delete("/delfriend", endpoint="delete_friend")
    def _delete_friend() -> Response:
        resp = handlers.delete_relationship(store, request.args, g.claim)
        return _json(resp.status, resp.to_json())

    @app.get("/checkfriend", endpoint="check_friend")
    def _check_friend() -> Response:
        resp = handlers.get_relationship(store, request.args, g.claim)
        return _json(resp.status, resp.to_json())

    return app


def main(argv: Optional[list[str]] = None) -> int:
    """Load the environment, connect to the database and serve the API."""
    parser = argparse.ArgumentParser(prog="twigo", description="Serve the twigo API.")
    parser.parse_args(argv)

    load_dotenv(".env")
    settings = Settings.from_env(os.environ)
    print("Site title: " + settings.site_title)

    try:
        store = connect(os.environ)
    except StoreError as exc:
        print(exc, file=sys.stderr)
        return 1

    app = create_app(store, settings)
    host, port = _split_address(settings.address)
    app.run(host=host, port=port)
    return 0