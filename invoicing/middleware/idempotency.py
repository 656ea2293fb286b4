# invoicing/middleware/idempotency.py
"""
Idempotency-Key deduplication for invoice and payment-link creation.

Clients send an `Idempotency-Key` header (UUID) on POST requests.
The middleware:
  1. On first request: processes normally and caches the response (24h TTL).
  2. On replay: returns the cached response without re-executing the handler.
  3. While the first request is still running: answers 409.

Keys are scoped to the caller's bearer token so two users can never replay
each other's responses.
"""

import hashlib
import json

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from invoicing.services.cache import cache

logger = structlog.get_logger()

_IDEMPOTENCY_TTL = 86_400  # 24 hours
_LOCK_TTL = 30
_APPLICABLE_PATHS_PREFIX = "/api/v1/"


def _caller_scope(request: Request) -> str:
    auth = request.headers.get("Authorization", "anonymous")
    return hashlib.sha256(auth.encode()).hexdigest()[:16]


class IdempotencyMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or not request.url.path.startswith(_APPLICABLE_PATHS_PREFIX):
            return await call_next(request)

        idempotency_key = request.headers.get("Idempotency-Key")
        if not idempotency_key:
            return await call_next(request)

        scope = _caller_scope(request)
        cache_key = f"idempotency:{scope}:{idempotency_key}"
        lock_key = f"idempotency_lock:{scope}:{idempotency_key}"

        try:
            cached = await cache.get(cache_key)
            if cached:
                logger.info("idempotency_cache_hit", key=idempotency_key, path=request.url.path)
                payload = json.loads(cached)
                return JSONResponse(
                    status_code=payload["status_code"],
                    content=payload["body"],
                    headers={"X-Idempotent-Replayed": "true"},
                )

            acquired = await cache.setnx(lock_key, "1", ex=_LOCK_TTL)
            if not acquired:
                return JSONResponse(
                    status_code=409,
                    content={
                        "error": {
                            "code": "CONCURRENT_REQUEST",
                            "message": "A request with this Idempotency-Key is already being processed",
                        }
                    },
                )
        except Exception as e:
            logger.warning("idempotency_cache_check_failed", error=str(e))
            return await call_next(request)

        response = await call_next(request)

        # 5xx responses are not cached so the client can retry.
        if response.status_code >= 500:
            await _release(lock_key)
            return response

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk
        replay = Response(
            content=body_bytes,
            status_code=response.status_code,
            headers=dict(response.headers),
        )

        try:
            body_text = body_bytes.decode("utf-8")
            try:
                body_json = json.loads(body_text)
            except ValueError:
                body_json = {"raw": body_text}
            await cache.set(
                cache_key,
                json.dumps({"status_code": response.status_code, "body": body_json}),
                _IDEMPOTENCY_TTL,
            )
        except Exception as e:
            logger.warning("idempotency_cache_store_failed", error=str(e))

        await _release(lock_key)
        return replay


async def _release(lock_key: str) -> None:
    try:
        await cache.delete(lock_key)
    except Exception as e:
        logger.warning("idempotency_lock_release_failed", error=str(e))
