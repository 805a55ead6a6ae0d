# twigo

twigo is a small social-network HTTP API built on Flask. People register and
log in, keep a profile with an avatar and a banner, write short posts, follow
each other and read the posts of the people they follow. There is also a plain
product list. Data lives in MongoDB. Passwords are stored as bcrypt hashes
(cost 8), and a login hands back an HS256 JSON Web Token that is valid for
24 hours.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

Settings come from the environment. A `.env` file in the working directory is
read first.

| Variable      | Meaning                                                    |
|---------------|------------------------------------------------------------|
| `SITE_TITLE`  | Printed when the server starts                             |
| `DB_USERNAME` | MongoDB user                                               |
| `DB_PASSWORD` | MongoDB password                                           |
| `DB_HOST`     | MongoDB host for the `mongodb+srv://` connection string    |
| `DB_NAME`     | Database name                                              |
| `JWTSIGN`     | Secret used to sign and check tokens                       |
| `PORT`        | Address to listen on, for example `:8080` (empty: port 80) |
| `DOMAIN`      | Domain of the `token` cookie set at login                  |
| `BASEPATH`    | Public base URL used in avatar and banner addresses        |

An example `.env`:

```
SITE_TITLE=twigo
DB_USERNAME=user
DB_PASSWORD=password
DB_HOST=cluster.example.com
DB_NAME=twigo
JWTSIGN=secret
PORT=:8080
DOMAIN=localhost
BASEPATH=http://localhost:8080
```

## Running

```
twigo
```

This prints the site title, connects to the database and serves the API. If
the database cannot be reached, the error is printed and the command exits
with status 1.

## Endpoints

Open to everyone:

- `GET /ping` returns `pong`; `GET /health-check` returns `ok`
- `GET /products` lists the products
- `POST /register` takes a JSON user with `email` and a `password` of at least
  six bytes; the e-mail must not be registered already
- `POST /login` takes `email` and `password`, returns `{"token": ...}` and also
  sets a `token` cookie
- `GET /images/...` serves files from `public/images`

These need an `Authorization: Bearer <token>` header. A missing header, a token
that does not verify, or a token for an e-mail that is not registered gives a
401 answer:

- `GET /profile?id=...` returns a user, without the password hash
- `GET /users?page=&type=new|follow&search=` lists users whose name matches
  `search` (case-insensitive), twenty per page; `new` keeps users the caller
  does not follow, `follow` keeps those the caller follows
- `PUT /user` updates the non-empty profile fields of the caller
- `POST /post` takes `{"message": ...}`; `DELETE /post?id=...` deletes one of
  the caller's posts
- `GET /posts?id=...&page=...` lists a user's posts, newest first
- `GET /friendsposts?page=...` lists posts of followed users, newest first,
  twenty per page
- `POST /product` takes `{"product": ...}`
- `POST /upload/avatar` and `POST /upload/banner` take a multipart file in the
  form field `A` or `B` respectively; it is saved as
  `public/images/avatars/<user id><ext>` or `public/images/banners/<user id><ext>`
  and its `BASEPATH` address is stored on the profile
- `POST /addfriend?id=...`, `DELETE /delfriend?id=...`, `GET /checkfriend?id=...`
  (the last answers `"true"` or `"false"` in its message)

## Using it from Python

- `twigo.app.create_app(store, settings)` builds the Flask application from a
  store and a `twigo.app.Settings`, which `Settings.from_env(environ)` fills in.
  `twigo.app.main()` is what the `twigo` command runs.
- `twigo.db.connect(environ)` opens the MongoDB connection, checks it with a
  ping and returns a `twigo.db.Store`. Failures raise `twigo.db.StoreError`;
  missing documents raise its subclass `NotFoundError`.
  `twigo.db.encrypt_password(password)` gives a bcrypt hash.
- `twigo.tokens.generate_jwt(user, secret)` signs a token and
  `twigo.tokens.process_token(value, secret, store)` checks a `Bearer` value,
  raising `twigo.tokens.TokenError` when it is malformed or does not verify.
- `twigo.handlers` holds one function per endpoint, each returning a
  `twigo.models.ApiResponse` with a status, a message and data.
- `twigo.models` holds the records (`User`, `Claim`, `NewPost`, `Product`,
  `PostRecord`, `ProductRecord`, `FriendPost`, `Relationship`, `Image`,
  `LoginResponse`) and their JSON and document forms.