"""HTTP API for mirroring container images between registries.

Endpoints:
- GET  /health : liveness check.
- POST /       : copy a batch of images ``{"mirrors": [{"src", "dst"}], "parallelism": n}``
                 and report which copies failed.

Run:
  registry-mirror
Then POST a batch to http://127.0.0.1:8080/
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from typing import List, Optional, Sequence, Union

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from . import __version__
from .batch import BatchCoordinator, BatchRequest
from .core.config import ServiceConfig
from .core.copier import Copier, CraneCopier

logger = logging.getLogger(__name__)

app = FastAPI(title="Registry Mirror API", version=__version__)


class MirrorSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    src: StrictStr = ""
    dst: StrictStr = ""


class MirrorRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mirrors: Optional[List[MirrorSpec]] = None
    parallelism: StrictInt = Field(default=0, ge=0)


class MirrorErrorItem(BaseModel):
    index: int
    name: str
    error: str


class MirrorResponse(BaseModel):
    ok: bool
    errors: Optional[List[MirrorErrorItem]] = None


@lru_cache
def get_config() -> ServiceConfig:
    return ServiceConfig.from_env()


def get_copier(config: ServiceConfig = Depends(get_config)) -> Copier:
    return CraneCopier(binary=config.copy_binary, extra_args=config.copy_args)


# ----------------------
# Request decoding
# ----------------------


def _bad_request(msg: str) -> HTTPException:
    return HTTPException(status_code=400, detail=msg)


async def read_body(request: Request, limit: int) -> bytes:
    """Read the request body, failing with 413 once it grows past ``limit`` bytes."""
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise HTTPException(
                status_code=413,
                detail="Request body must not be larger than 1MB",
            )
    return bytes(body)


def _key_offset(text: str, loc: Sequence[Union[int, str]]) -> int:
    """Best-effort offset just past the ``"key":`` of the innermost field in ``loc``."""
    keys = [p for p in loc if isinstance(p, str)]
    if not keys:
        return len(text)
    indexes = [p for p in loc if isinstance(p, int)]
    nth = indexes[-1] if indexes else 0

    matches = list(re.finditer(r'"%s"\s*:' % re.escape(keys[-1]), text))
    if not matches:
        return len(text)
    return matches[min(nth, len(matches) - 1)].end()


def _validation_message(exc: ValidationError, text: str) -> str:
    err = exc.errors()[0]
    loc = err["loc"]

    if err["type"] == "extra_forbidden":
        return f'Request body contains unknown field "{loc[-1]}"'

    field = ".".join(p for p in loc if isinstance(p, str))
    return (
        f'Request body contains an invalid value for the "{field}" field '
        f"(at position {_key_offset(text, loc)})"
    )


def decode_mirror_request(body: bytes) -> MirrorRequest:
    """Decode and validate a mirror request body.

    Only the first JSON value is read; anything after it is ignored.

    Raises:
        HTTPException: 400 with a message describing what is wrong with the body.
    """
    if not body.strip():
        raise _bad_request("Request body must not be empty")

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise _bad_request(
            f"Request body contains badly-formed JSON (at position {e.start})"
        ) from None

    start = len(text) - len(text.lstrip())
    try:
        value, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as e:
        if e.pos >= len(text.rstrip()) or e.msg.startswith("Unterminated string"):
            raise _bad_request("Request body contains badly-formed JSON") from None
        raise _bad_request(
            f"Request body contains badly-formed JSON (at position {e.pos})"
        ) from None

    try:
        return MirrorRequest.model_validate(value)
    except ValidationError as e:
        raise _bad_request(_validation_message(e, text)) from None


# ----------------------
# Endpoints
# ----------------------


@app.exception_handler(Exception)
async def internal_error(request: Request, exc: Exception) -> JSONResponse:
    # details stay in the server log
    logger.error("Unhandled error serving %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/", response_model=MirrorResponse, response_model_exclude_none=True)
async def mirror(
    request: Request,
    config: ServiceConfig = Depends(get_config),
    copier: Copier = Depends(get_copier),
):
    body = await read_body(request, config.max_body_bytes)
    req = decode_mirror_request(body)

    batch = BatchRequest.from_mirrors(
        (m.model_dump() for m in req.mirrors or []),
        parallelism=req.parallelism,
    )
    coordinator = BatchCoordinator(copier, default_parallelism=config.default_parallelism)
    result = await coordinator.run(batch)

    if not result.ok:
        errors = [MirrorErrorItem(**e.to_dict()) for e in result.errors]
        return MirrorResponse(ok=False, errors=errors)

    return MirrorResponse(ok=True)


def main() -> None:
    import uvicorn

    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting registry mirror on %s:%d", config.host, config.port)

    uvicorn.run(
        "registry_mirror.api:app",
        host=config.host,
        port=config.port,
        timeout_graceful_shutdown=config.shutdown_grace_seconds,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
