# File: ithbat/server.py
"""ithbat.server: aiohttp.web front end.

Routes
------
``POST /api/verify``     JSON in, JSON out; 400 for bad input, 502 when the
                         search engine fails, 500 otherwise.
``POST /api/research``   Server-Sent-Events stream of research steps. A client
                         disconnect cancels the crawl.
``GET  /api/chat/{slug}`` and ``GET /api/session/{session_id}``
                         archived conversations; ``DELETE /api/chat/{slug}``.
``GET  /api/health``     liveness check.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncIterator, Literal, Optional

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ithbat.config import IthbatConfig
from ithbat.engine import Engine
from ithbat.errors import InputError, SearchFailure
from ithbat.events import encode_sse
from ithbat.logger import logger
from ithbat.verification import validate_query

__all__ = ["ENGINE_KEY", "CONFIG_KEY", "VerifyRequest", "ResearchRequest", "create_app", "run_server"]

ENGINE_KEY: web.AppKey[Engine] = web.AppKey("engine", Engine)
CONFIG_KEY: web.AppKey[IthbatConfig] = web.AppKey("config", IthbatConfig)


class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    claim_type: Literal["hadith", "quran", "scholar", "general"] = Field("general", alias="claimType")
    original_claim: str = Field("", alias="originalClaim")


class ResearchRequest(BaseModel):
    query: str
    depth: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    language: str = "en"


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InputError("Invalid JSON body") from None


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    field = ".".join(str(p) for p in err.get("loc", ()))
    return f"{field}: {err['msg']}" if field else err["msg"]


async def handle_verify(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    try:
        body = VerifyRequest.model_validate(await _read_json(request))
        response = await engine.verify(body.query, body.claim_type, body.original_claim)
    except ValidationError as exc:
        return _error(_first_error(exc), 400)
    except InputError as exc:
        return _error(str(exc), 400)
    except SearchFailure as exc:
        logger.error("Verification search failed: %s", exc)
        return _error("Search failed", 502)
    except Exception:
        logger.exception("Verification failed")
        return _error("Verification failed", 500)
    return web.json_response(response.to_dict())


async def handle_research(request: web.Request) -> web.StreamResponse:
    engine = request.app[ENGINE_KEY]
    config = request.app[CONFIG_KEY]
    try:
        body = ResearchRequest.model_validate(await _read_json(request))
        validate_query(body.query)
        profile = body.depth or config.default_profile
        if profile not in config.profiles:
            raise InputError(f"Unknown depth {profile!r}; expected one of {sorted(config.profiles)}")
    except ValidationError as exc:
        return _error(_first_error(exc), 400)
    except InputError as exc:
        return _error(str(exc), 400)

    response = web.StreamResponse(
        headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )
    await response.prepare(request)

    cancel = asyncio.Event()
    events = engine.research(
        body.query, profile, cancel_event=cancel, session_id=body.session_id, language=body.language
    )
    try:
        async for event in events:
            try:
                await response.write(encode_sse(event).encode("utf-8"))
            except ConnectionError:
                logger.info("Client disconnected, cancelling research")
                cancel.set()
                break
    finally:
        await events.aclose()
    if not cancel.is_set():
        await response.write_eof()
    return response


async def handle_chat(request: web.Request) -> web.Response:
    store = request.app[ENGINE_KEY].store
    record = await store.read_by_slug(request.match_info["slug"]) if store else None
    if record is None:
        return _error("Chat not found", 404)
    return web.json_response(json.loads(record.model_dump_json()))


async def handle_session(request: web.Request) -> web.Response:
    store = request.app[ENGINE_KEY].store
    record = await store.read_by_session(request.match_info["session_id"]) if store else None
    if record is None:
        return _error("Session not found", 404)
    return web.json_response(json.loads(record.model_dump_json()))


async def handle_delete_chat(request: web.Request) -> web.Response:
    store = request.app[ENGINE_KEY].store
    deleted = await store.delete(request.match_info["slug"]) if store else False
    if not deleted:
        return _error("Chat not found", 404)
    return web.json_response({"deleted": True})


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


def create_app(config: IthbatConfig, engine: Optional[Engine] = None) -> web.Application:
    """Build the application; the engine is started and stopped with the app."""
    app = web.Application()
    app[CONFIG_KEY] = config
    app[ENGINE_KEY] = engine or Engine(config)

    async def _engine_ctx(app: web.Application) -> AsyncIterator[None]:
        async with app[ENGINE_KEY]:
            yield

    app.cleanup_ctx.append(_engine_ctx)
    app.router.add_post("/api/verify", handle_verify)
    app.router.add_post("/api/research", handle_research)
    app.router.add_get("/api/chat/{slug}", handle_chat)
    app.router.add_delete("/api/chat/{slug}", handle_delete_chat)
    app.router.add_get("/api/session/{session_id}", handle_session)
    app.router.add_get("/api/health", handle_health)
    return app


def run_server(config: IthbatConfig, host: Optional[str] = None, port: Optional[int] = None) -> None:
    host = host or config.server.host
    port = port or config.server.port
    logger.info("Serving on http://%s:%d", host, port)
    web.run_app(create_app(config), host=host, port=port, print=None)
