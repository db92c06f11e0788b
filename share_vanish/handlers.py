"""
HTTP handlers for the content exchange.

Routes (mounted under ``/api/content``):
    POST /accessCode        allocate a code
    POST /                  create content   {accessCode, encryptedData, createdAt}
    GET  /{accessCode}      fetch content
    PUT  /{accessCode}      update content   {encryptedData, createdAt?}

Responses use the envelope ``{"success": bool, "data": {...}}`` or
``{"success": false, "error": "..."}``.
"""
import logging
from datetime import datetime
from typing import Any, Optional

import orjson
import pydantic
from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ShareVanishError, ValidationError
from .exchange import ContentExchange

logger = logging.getLogger("share_vanish.handlers")

EXCHANGE = web.AppKey("exchange", ContentExchange)


def _dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def success(data: dict, status: int = 200) -> web.Response:
    return web.json_response(
        {"success": True, "data": data}, status=status, dumps=_dumps,
    )


def failure(message: str, status: int) -> web.Response:
    return web.json_response(
        {"success": False, "error": message}, status=status, dumps=_dumps,
    )


class CreateContent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_code: Optional[str] = Field(default=None, alias="accessCode")
    encrypted_data: Optional[str] = Field(default=None, alias="encryptedData")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class UpdateContent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    encrypted_data: Optional[str] = Field(default=None, alias="encryptedData")
    # accepted for compatibility, creation time never changes on update
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


async def _read_body(request: web.Request, model: type[BaseModel]) -> Any:
    """Parse and validate a JSON body, mapping every failure to 400."""
    raw = await request.read()
    try:
        payload = orjson.loads(raw) if raw else {}
        if not isinstance(payload, dict):
            raise ValidationError("request body must be a JSON object")
        return model.model_validate(payload)
    except orjson.JSONDecodeError as err:
        raise ValidationError("request body is not valid JSON") from err
    except pydantic.ValidationError as err:
        fields = ", ".join(
            str(error["loc"][0]) for error in err.errors() if error["loc"]
        )
        raise ValidationError(f"invalid field(s): {fields}") from err


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Map exchange errors to envelopes; never leak internal exceptions."""
    try:
        return await handler(request)
    except ShareVanishError as err:
        # request.path carries the access code, keep it out of the logs
        logger.debug(
            "%s request failed: %d %s",
            request.method, err.status, type(err).__name__,
        )
        return failure(err.message, err.status)
    except web.HTTPException as err:
        if err.status == 413:
            return failure("content too large", 413)
        if err.status >= 400:
            return failure(err.reason, err.status)
        raise
    except Exception:
        logger.exception("Unhandled error serving %s request", request.method)
        return failure("internal error", 500)


async def allocate_code(request: web.Request) -> web.Response:
    exchange = request.app[EXCHANGE]
    access_code = await exchange.allocate()
    return success({"accessCode": access_code})


async def create_content(request: web.Request) -> web.Response:
    exchange = request.app[EXCHANGE]
    body = await _read_body(request, CreateContent)
    access_code = await exchange.create(
        body.access_code, body.encrypted_data, body.created_at,
    )
    return success({"accessCode": access_code})


async def get_content(request: web.Request) -> web.Response:
    exchange = request.app[EXCHANGE]
    record = await exchange.fetch(request.match_info["access_code"])
    return success({
        "encryptedData": record.ciphertext,
        "createdAt": record.created_at.isoformat(),
    })


async def update_content(request: web.Request) -> web.Response:
    exchange = request.app[EXCHANGE]
    access_code = request.match_info["access_code"]
    body = await _read_body(request, UpdateContent)
    await exchange.update(access_code, body.encrypted_data)
    return success({"accessCode": access_code})


def setup_routes(app: web.Application, prefix: str = "/api/content") -> None:
    app.router.add_post(f"{prefix}/accessCode", allocate_code)
    app.router.add_post(prefix, create_content)
    app.router.add_get(prefix + "/{access_code}", get_content)
    app.router.add_put(prefix + "/{access_code}", update_content)
