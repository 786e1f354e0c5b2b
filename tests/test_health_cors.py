def test_health_and_ready(test_context):
    client, _ = test_context

    assert client.get("/health").json() == {"ok": True}
    ready = client.get("/ready")
    assert ready.status_code == 200
    assert "ok" in ready.json()

    root = client.get("/")
    assert root.json()["docs"] == "/docs"


def test_preflight_allows_any_origin(test_context):
    client, _ = test_context

    res = client.options(
        "/functions/v1/confirm-redemption",
        headers={
            "Origin": "https://app.wooffy.app",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type, x-client-info, apikey",
        },
    )
    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in res.headers


def test_error_responses_carry_request_id(test_context):
    client, _ = test_context

    res = client.post(
        "/functions/v1/confirm-redemption",
        json={},
        headers={"Origin": "https://app.wooffy.app", "X-Request-ID": "req-123"},
    )
    assert res.status_code == 401
    body = res.json()
    assert body["success"] is False
    assert body["request_id"] == "req-123"
    assert res.headers["x-request-id"] == "req-123"
    assert res.headers["access-control-allow-origin"] == "*"
