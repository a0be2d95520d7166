from __future__ import annotations

import logging

import httpx
import pytest

from apps.api.main import app


@pytest.mark.anyio
async def test_api_logs_request_id_for_success(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="markdowndb.api")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post("/v1/validate", json={"text": "<JOB>\nTITLE: x\n"})

    assert response.status_code == 200
    request_id = response.headers["X-Markdowndb-Request-Id"]
    messages = [record.message for record in caplog.records if record.name == "markdowndb.api"]
    assert any(
        '"event":"start"' in message and request_id in message and '"endpoint":"validate"' in message
        for message in messages
    )
    assert any(
        '"event":"done"' in message and request_id in message and '"valid":false' in message
        for message in messages
    )


@pytest.mark.anyio
async def test_api_logs_request_id_and_error_code_for_failure(
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger="markdowndb.api")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post("/v1/validate", json={"text": "x", "kind": "resume"})

    assert response.status_code == 400
    request_id = response.headers["X-Markdowndb-Request-Id"]
    messages = [record.message for record in caplog.records if record.name == "markdowndb.api"]
    assert any(
        '"event":"error"' in message
        and request_id in message
        and '"error_code":"UNSUPPORTED_KIND"' in message
        and '"failure_stage":"validate_inputs"' in message
        for message in messages
    )


@pytest.mark.anyio
async def test_api_logs_stale_fix_as_done(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="markdowndb.api")

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        response = await client.post(
            "/v1/fix",
            json={"text": "TITLE: x\n", "fix": {"type": "delete_section", "name": "PERKS"}},
        )

    assert response.status_code == 200
    messages = [record.message for record in caplog.records if record.name == "markdowndb.api"]
    assert any('"event":"done"' in message and '"applied":false' in message for message in messages)
