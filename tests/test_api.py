from datetime import datetime, timedelta

import config
import main
import pytest
from jose import jwt


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "URL Shortener API"


def test_health_reports_link_count(client, store):
    store.create("https://example.com")
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["links"] == 1


def test_create_short_url(client, clock, sink):
    response = client.post("/shorturls", json={"url": "https://example.com", "validity": 5, "shortcode": "abc12"})

    assert response.status_code == 201
    data = response.json()
    assert data["shortLink"] == main.short_link("abc12")
    assert data["shortLink"] == f"http://{config.HOST}:{config.PORT}/abc12"
    assert parse_ts(data["expiry"]) == clock.now + timedelta(minutes=5)
    assert ("backend", "info", "url-shortener", f"Created short URL {data['shortLink']} for https://example.com") in sink.events


def test_create_defaults_to_thirty_minutes(client, clock):
    response = client.post("/shorturls", json={"url": "https://example.com"})
    assert response.status_code == 201
    assert parse_ts(response.json()["expiry"]) == clock.now + timedelta(minutes=30)


def test_create_accepts_numeric_string_validity(client, clock):
    response = client.post("/shorturls", json={"url": "https://example.com", "validity": "10"})
    assert response.status_code == 201
    assert parse_ts(response.json()["expiry"]) == clock.now + timedelta(minutes=10)


def test_create_missing_url(client, sink):
    response = client.post("/shorturls", json={"validity": 10})
    assert response.status_code == 400
    assert response.json() == {"error": "URL is required"}
    assert sink.events[-1][:3] == ("backend", "error", "url-shortener")


def test_create_malformed_body_is_bad_request(client):
    response = client.post("/shorturls", json={"url": "https://example.com", "validity": "soon"})
    assert response.status_code == 400
    assert "validity" in response.json()["error"]


def test_create_shortcode_conflict(client, sink):
    first = client.post("/shorturls", json={"url": "https://a.com", "shortcode": "abc12"})
    second = client.post("/shorturls", json={"url": "https://b.com", "shortcode": "abc12"})

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json() == {"error": "Requested shortcode is already in use"}
    assert sink.events[-1][1] == "warn"


def test_redirect(client, store, sink):
    store.create("https://example.com/target", shortcode="go123")

    response = client.get("/go123", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com/target"
    assert ("backend", "debug", "url-shortener", "Redirecting go123 to https://example.com/target") in sink.events


def test_redirect_unknown(client):
    response = client.get("/nothere", follow_redirects=False)
    assert response.status_code == 404
    assert response.json() == {"error": "Short link not found"}


def test_redirect_expired_then_gone(client, store, clock):
    store.create("https://example.com", validity_minutes=1, shortcode="old12")
    clock.advance(minutes=1, seconds=1)

    expired = client.get("/old12", follow_redirects=False)
    gone = client.get("/old12", follow_redirects=False)

    assert expired.status_code == 410
    assert expired.json() == {"error": "Short link has expired"}
    assert gone.status_code == 404


def test_stats(client, store, clock):
    record = store.create("https://example.com", shortcode="st123")
    client.get("/st123", headers={"Referer": "https://news.example", "User-Agent": "agent/1"}, follow_redirects=False)
    clock.advance(seconds=3)
    client.get("/st123", headers={"User-Agent": "agent/2"}, follow_redirects=False)

    response = client.get("/shorturls/st123")

    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"shortcode", "totalClicks", "originalUrl", "createdAt", "expiry", "clickData"}
    assert data["shortcode"] == "st123"
    assert data["totalClicks"] == 2
    assert data["originalUrl"] == "https://example.com"
    assert parse_ts(data["createdAt"]) == record.created_at
    assert parse_ts(data["expiry"]) == record.expires_at

    first, second = data["clickData"]
    assert set(first) == {"timestamp", "referrer", "userAgent"}
    assert first["referrer"] == "https://news.example"
    assert first["userAgent"] == "agent/1"
    assert second["referrer"] == "Direct"
    assert second["userAgent"] == "agent/2"
    assert parse_ts(second["timestamp"]) - parse_ts(first["timestamp"]) == timedelta(seconds=3)


def test_stats_does_not_record_click(client, store):
    store.create("https://example.com", shortcode="st123")
    client.get("/shorturls/st123")
    assert client.get("/shorturls/st123").json()["totalClicks"] == 0


def test_stats_unknown_and_expired(client, store, clock):
    assert client.get("/shorturls/none1").status_code == 404

    store.create("https://example.com", validity_minutes=1, shortcode="old12")
    clock.advance(minutes=2)
    assert client.get("/shorturls/old12").status_code == 410
    assert client.get("/shorturls/old12").status_code == 404


def test_full_lifecycle(client, clock):
    created = client.post("/shorturls", json={"url": "https://example.com", "validity": 1})
    code = created.json()["shortLink"].rsplit("/", 1)[-1]

    assert client.get(f"/{code}", follow_redirects=False).status_code == 302
    clock.advance(minutes=1, seconds=5)
    assert client.get(f"/shorturls/{code}").status_code == 410
    assert client.get(f"/{code}", follow_redirects=False).status_code == 404


def test_bearer_token_is_optional_by_default(client):
    response = client.post("/shorturls", json={"url": "https://example.com"})
    assert response.status_code == 201


def test_bearer_token_required_when_enabled(client, monkeypatch):
    monkeypatch.setattr(config, "REQUIRE_AUTH", True)

    anonymous = client.post("/shorturls", json={"url": "https://example.com"})
    token = jwt.encode({"sub": "alice@example.com"}, "provider-secret", algorithm="HS256")
    authorized = client.post(
        "/shorturls",
        json={"url": "https://example.com"},
        headers={"Authorization": f"Bearer {token}"},
    )

    assert anonymous.status_code == 401
    assert anonymous.json() == {"error": "Not authenticated"}
    assert authorized.status_code == 201


@pytest.mark.parametrize("path", ["/shorturls/none1", "/none1"])
def test_errors_are_reported_to_log_sink(client, sink, path):
    client.get(path, follow_redirects=False)
    stack, level, package, message = sink.events[-1]
    assert (stack, level, package) == ("backend", "warn", "url-shortener")
    assert path in message


@pytest.mark.parametrize("code", ["a", "login", "shorturls", "my.link"])
def test_custom_shortcodes_are_served_verbatim(client, code):
    created = client.post("/shorturls", json={"url": "https://example.com", "shortcode": code})
    assert created.status_code == 201
    assert created.json()["shortLink"] == main.short_link(code)

    response = client.get(f"/{code}", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com"


def test_create_rejects_shadowed_route_name(client):
    response = client.post("/shorturls", json={"url": "https://example.com", "shortcode": "health"})
    assert response.status_code == 400
    assert "health" in response.json()["error"]


def test_create_huge_validity_is_bad_request(client, store):
    response = client.post("/shorturls", json={"url": "https://example.com", "validity": 10**12})
    assert response.status_code == 400
    assert "out of range" in response.json()["error"]
    assert len(store) == 0
