import json
import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from brewline.infra import redis_client
from brewline.infra.idempotency import (
    idempotency_clear_key,
    idempotency_precheck,
    idempotency_store_result,
)


def make_request(idem_key=None, body=b'{"foo": "bar"}'):
    req = AsyncMock(spec=Request)
    req.headers = {"Idempotency-Key": idem_key} if idem_key else {}
    req.method = "POST"
    req.url.path = "/api/orders"
    req.body = AsyncMock(return_value=body)
    return req


@pytest.mark.asyncio
async def test_no_header_means_plain_processing():
    assert await idempotency_precheck(make_request(), scope="guest", route_key="t") is None


@pytest.mark.asyncio
async def test_idempotency_flow():
    idem_key = str(uuid.uuid4())

    res = await idempotency_precheck(make_request(idem_key), scope="guest", route_key="t")
    assert isinstance(res, tuple)
    rkey, rhash = res
    assert rkey == f"brewline:idemp:guest:t:{idem_key}"

    data = json.loads(await redis_client._redis_async.get(rkey))
    assert data["state"] == "processing"

    # concurrent duplicate while processing
    with pytest.raises(HTTPException) as exc:
        await idempotency_precheck(make_request(idem_key), scope="guest", route_key="t")
    assert exc.value.status_code == 409

    await idempotency_store_result(rkey, rhash, status=201, body={"order_id": "o1"})

    replay = await idempotency_precheck(make_request(idem_key), scope="guest", route_key="t")
    assert isinstance(replay, JSONResponse)
    assert replay.status_code == 201
    assert json.loads(replay.body) == {"order_id": "o1"}


@pytest.mark.asyncio
async def test_payload_mismatch_rejected():
    idem_key = str(uuid.uuid4())
    await idempotency_precheck(make_request(idem_key), scope="guest", route_key="t")
    with pytest.raises(HTTPException) as exc:
        await idempotency_precheck(make_request(idem_key, body=b"{}"), scope="guest", route_key="t")
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_clear_key_releases_marker():
    idem_key = str(uuid.uuid4())
    rkey, _ = await idempotency_precheck(make_request(idem_key), scope="guest", route_key="t")
    await idempotency_clear_key(rkey)
    assert await redis_client._redis_async.get(rkey) is None
    assert isinstance(
        await idempotency_precheck(make_request(idem_key), scope="guest", route_key="t"), tuple
    )
