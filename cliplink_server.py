#!/usr/bin/env python3
"""
Cliplink - a single-user server clipboard with view- and time-limited share links
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
import yaml
from fastapi import Body, FastAPI, Form, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from pydantic import BaseModel, Field, field_validator

from errors import (
    AccessDeniedError,
    ClipLinkError,
    DenyReason,
    EmptyContentError,
    IdConflictError,
    InvalidIdError,
    ShareNotFoundError,
    UnauthorizedError,
)
from id_allocator import CLIPBOARD_KEY, share_path
from kv_store import FileStore, KVStore, MemoryStore
from pages import ADMIN_PAGE, LOGIN_PAGE, MANIFEST, get_password_page
from sessions import SESSION_COOKIE, SessionManager
from share_manager import ShareManager, now_ms

# Configuration management
CONFIG_DIR = Path.home() / ".cliplink"
CONFIG_FILE = CONFIG_DIR / "config.yaml"
STORE_FILE = CONFIG_DIR / "store.json"
MASTER_KEY_FILE = CONFIG_DIR / "master.key"
LOG_FILE = CONFIG_DIR / "server.log"

DEFAULT_CONFIG = {
    "public_url": None,
    "port": 9321,
    "persistence": True,
    "store_file": str(STORE_FILE),
    "username": "admin",
    "password": None,
    "session_ttl_seconds": 86400,
    # Browsers drop Secure cookies over plain http; set false when not behind https
    "secure_cookies": True,
    "max_custom_id_length": 64,
    "max_content_size_mb": 10,
}

# Paths reachable without a session
PUBLIC_PATHS = {"/login", "/logout", "/health"}
NO_STORE = {"Cache-Control": "no-store", "X-Content-Type-Options": "nosniff"}

logger = logging.getLogger("cliplink")


def setup_logging(log_file: Path = LOG_FILE) -> logging.Logger:
    """Configure the server log"""
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.INFO)
    logger.propagate = False  # Prevent propagation to uvicorn logger
    logger.handlers.clear()

    # Log format: timestamp | level | message
    formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    try:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        os.chmod(log_file, 0o600)
    except OSError as e:
        logger.warning(f"Failed to setup file logging at {log_file}: {e}")

    return logger


def load_config(config_file: Path = CONFIG_FILE) -> dict:
    """Load configuration from ~/.cliplink/config.yaml, creating it on first run"""
    config_file.parent.mkdir(parents=True, exist_ok=True)

    if config_file.exists():
        with open(config_file, 'r') as f:
            config = {**DEFAULT_CONFIG, **(yaml.safe_load(f) or {})}
    else:
        with open(config_file, 'w') as f:
            yaml.dump(DEFAULT_CONFIG, f)
        os.chmod(config_file, 0o600)
        config = dict(DEFAULT_CONFIG)

    # Credentials from the environment win over the file
    config["username"] = os.environ.get("CLIPLINK_USERNAME", config["username"])
    config["password"] = os.environ.get("CLIPLINK_PASSWORD", config["password"])
    return config


def insecure_cookie_warning(config: dict) -> Optional[str]:
    """Explain why login would loop when Secure cookies meet a plain-http origin"""
    if not config.get("secure_cookies", True):
        return None
    public_url = config.get("public_url") or ""
    if public_url.lower().startswith("https://"):
        return None
    return (f"secure_cookies is on but public_url is {public_url or 'unset'}; browsers will drop the "
            f"session cookie over plain http and login will loop. Serve over https or set "
            f"secure_cookies: false in {CONFIG_FILE}")


def build_store(config: dict) -> KVStore:
    if config.get("persistence", True):
        store_file = Path(config.get("store_file") or STORE_FILE)
        return FileStore(store_file, store_file.parent / MASTER_KEY_FILE.name)
    return MemoryStore()


class ShareUpdate(BaseModel):
    """Access policy fields; numbers may arrive as strings from form inputs"""

    maxViews: Optional[int] = Field(default=None, ge=0)
    validMinutes: Optional[int] = Field(default=None, ge=0)

    @field_validator("maxViews", "validMinutes", mode="before")
    @classmethod
    def blank_means_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ShareCreate(ShareUpdate):
    customId: Optional[str] = None
    password: Optional[str] = None


def create_app(config: dict, store: Optional[KVStore] = None, clock=now_ms) -> FastAPI:
    """Build the FastAPI app around one store"""
    store = store if store is not None else build_store(config)
    manager = ShareManager(store, clock=clock, max_custom_id_length=config.get("max_custom_id_length", 64))
    sessions = SessionManager(
        store,
        username=config.get("username"),
        password=config.get("password"),
        ttl_seconds=config.get("session_ttl_seconds", 86400),
    )
    max_content_size = int(config.get("max_content_size_mb", 10) * 1024 * 1024)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info("Cliplink server starting")
        logger.info(f"Store: {type(store).__name__}")
        logger.info(f"Public URL: {config.get('public_url') or '(request origin)'}")
        logger.info("=" * 60)
        warning = insecure_cookie_warning(config)
        if warning:
            logger.warning(warning)
        yield
        logger.info("Cliplink server stopped")

    app = FastAPI(title="Cliplink", version="2.0.0", lifespan=lifespan)
    app.state.store = store
    app.state.manager = manager
    app.state.sessions = sessions

    def origin(request: Request) -> str:
        return (config.get("public_url") or str(request.base_url)).rstrip("/")

    def share_url(request: Request, share_id: str) -> str:
        return origin(request) + share_path(share_id)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "request"
        logger.warning(f"Rejected {request.method} {request.url.path}: invalid {field}")
        return JSONResponse(status_code=400, content={"detail": f"Invalid {field}: {first.get('msg', 'bad value')}"})

    @app.exception_handler(ClipLinkError)
    async def cliplink_error_handler(request: Request, exc: ClipLinkError):
        logger.error(f"{type(exc).__name__} during {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Authentication middleware
    @app.middleware("http")
    async def check_session(request: Request, call_next):
        """Require an administrator session except on public paths and share links"""
        path = request.url.path
        if path in PUBLIC_PATHS or path.startswith("/s/"):
            return await call_next(request)

        try:
            authenticated = sessions.is_authenticated(request)
        except ClipLinkError as e:
            logger.error(f"Session lookup failed for {path}: {e}")
            return JSONResponse(status_code=e.status_code, content={"detail": e.message})

        if not authenticated:
            if path == "/" and request.method == "GET":
                return RedirectResponse("/login", status_code=302)
            client_ip = request.client.host if request.client else "unknown"
            logger.warning(f"Unauthenticated {request.method} {path} from {client_ip}")
            return JSONResponse(status_code=UnauthorizedError.status_code, content={"detail": UnauthorizedError.message})

        return await call_next(request)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "ok"}

    # ── Login / logout ────────────────────────────────────────

    @app.get("/login", response_class=HTMLResponse)
    async def login_page():
        return LOGIN_PAGE

    @app.post("/login")
    async def login(request: Request, username: str = Form(""), password: str = Form("")):
        client_ip = request.client.host if request.client else "unknown"
        token = sessions.login(username, password)
        if token is None:
            logger.warning(f"Failed login for '{username}' from {client_ip}")
            return PlainTextResponse("Invalid username or password", status_code=401)

        logger.info(f"Login from {client_ip}")
        response = RedirectResponse("/", status_code=302)
        response.set_cookie(
            SESSION_COOKIE,
            token,
            max_age=sessions.ttl_seconds,
            path="/",
            httponly=True,
            secure=bool(config.get("secure_cookies", True)),
            samesite="strict",
        )
        return response

    @app.get("/logout")
    async def logout(request: Request):
        sessions.logout(request.cookies.get(SESSION_COOKIE))
        response = RedirectResponse("/login", status_code=302)
        response.delete_cookie(SESSION_COOKIE, path="/")
        return response

    # ── Administrator UI and clipboard ────────────────────────

    @app.get("/", response_class=HTMLResponse)
    async def serve_ui():
        return ADMIN_PAGE

    @app.get("/manifest.json")
    async def manifest():
        return Response(MANIFEST, media_type="application/json")

    @app.post("/save")
    async def save(request: Request):
        """Replace the clipboard with the raw request body"""
        body = await request.body()
        if len(body) > max_content_size:
            raise HTTPException(status_code=413, detail=f"Content exceeds max size of {max_content_size} bytes")
        try:
            content = body.decode("utf-8")
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="Content must be UTF-8 text")
        if not content:
            raise HTTPException(status_code=400, detail="Content is empty")

        store.put(CLIPBOARD_KEY, content)
        logger.info(f"Saved clipboard ({len(content)} bytes)")
        return PlainTextResponse("Saved")

    @app.get("/read")
    async def read():
        content = store.get(CLIPBOARD_KEY)
        if not content:
            raise HTTPException(status_code=404, detail="Clipboard is empty")
        return PlainTextResponse(content, headers=NO_STORE)

    # ── Share administration ──────────────────────────────────

    @app.post("/share")
    async def create_share(request: Request, body: Optional[ShareCreate] = Body(default=None)):
        """Snapshot the clipboard into a new share link"""
        body = body or ShareCreate()
        try:
            record = manager.create(
                max_views=body.maxViews,
                valid_minutes=body.validMinutes,
                custom_id=body.customId,
                password=body.password,
            )
        except (EmptyContentError, InvalidIdError, IdConflictError) as e:
            logger.warning(f"Share creation rejected: {e.message}")
            raise HTTPException(status_code=e.status_code, detail=e.message)

        return {"shareUrl": share_url(request, record.id), "id": record.id}

    @app.get("/api/shares")
    async def list_shares(request: Request):
        records = manager.list()
        logger.info(f"Listed {len(records)} shares")
        return [record.to_public_dict(share_url(request, record.id)) for record in records]

    @app.put("/api/shares/{share_id}")
    async def edit_share(request: Request, share_id: str, body: Optional[ShareUpdate] = Body(default=None)):
        body = body or ShareUpdate()
        try:
            record = manager.edit(share_id, max_views=body.maxViews, valid_minutes=body.validMinutes)
        except ShareNotFoundError as e:
            raise HTTPException(status_code=404, detail=e.message)
        return {"status": "ok", "share": record.to_public_dict(share_url(request, record.id))}

    @app.delete("/api/shares/{share_id}")
    async def delete_share(share_id: str):
        manager.delete(share_id)
        return {"status": "ok"}

    # ── Public share links ────────────────────────────────────

    def deliver(share_id: str, password: Optional[str]) -> Response:
        try:
            content = manager.consume(share_id, password)
        except ShareNotFoundError as e:
            return PlainTextResponse(e.message, status_code=404, headers=NO_STORE)
        except AccessDeniedError as e:
            if e.reason not in (DenyReason.PASSWORD_REQUIRED, DenyReason.PASSWORD_REJECTED):
                return PlainTextResponse(e.message, status_code=e.status_code, headers=NO_STORE)
            if password is None:
                # First visit: plain prompt
                return HTMLResponse(get_password_page(), headers=NO_STORE)
            return HTMLResponse(get_password_page(e.message), status_code=e.status_code, headers=NO_STORE)
        return PlainTextResponse(content, headers=NO_STORE)

    @app.get("/s/{share_id}")
    async def open_share(share_id: str):
        """View a share; protected shares answer with a password prompt"""
        return deliver(share_id, None)

    @app.post("/s/{share_id}")
    async def unlock_share(share_id: str, password: str = Form("")):
        return deliver(share_id, password)

    return app


def main():
    setup_logging()
    config = load_config()
    if not config.get("password"):
        logger.critical(f"No administrator password configured. Set 'password' in {CONFIG_FILE} "
                        f"or the CLIPLINK_PASSWORD environment variable.")
        sys.exit(1)

    port = config.get("port", 9321)
    print(f"Starting Cliplink server on port {port}...")
    print(f"Config file: {CONFIG_FILE}")
    print(f"Persistence: {config.get('persistence')}")
    print(f"Store file: {config.get('store_file')}")
    print(f"Log file: {LOG_FILE}")
    uvicorn.run(create_app(config), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
