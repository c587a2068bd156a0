import json

import pytest


def _event(ts_utc: int, type: str = "click", **extra) -> dict:
    event = {
        "ts_utc": ts_utc,
        "ts_iso": "2009-02-13T23:31:30Z",
        "url": "https://example.com",
        "title": "Test Page",
        "type": type,
        "data": {"selector": "#go"},
        "session_id": "sess-1",
        "field_id": None,
    }
    event.update(extra)
    return event


def test_healthz_is_plain_ok(client) -> None:
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.text == "ok"


def test_ready_pings_store(client) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ready"}


def test_end_to_end_scenario(client) -> None:
    batch = {"events": [_event(1, "navigate"), _event(2, "click"), _event(3, "focus")]}
    resp = client.post("/events", json=batch)
    assert resp.status_code == 204
    assert resp.content == b""

    resp = client.get("/events")
    assert resp.status_code == 200
    assert [e["ts_utc"] for e in resp.json()["events"]] == [3, 2, 1]

    resp = client.get("/events", params={"type": "click"})
    assert resp.status_code == 200
    events = resp.json()["events"]
    assert len(events) == 1
    assert events[0]["type"] == "click"
    assert events[0]["data"] == {"selector": "#go"}

    resp = client.get("/events", params={"since": "2"})
    assert resp.status_code == 200
    assert [e["ts_utc"] for e in resp.json()["events"]] == [3, 2]


def test_post_accepts_text_plain_body(client) -> None:
    # no-cors запросы расширения приходят без application/json
    body = json.dumps({"events": [_event(10)]})
    resp = client.post("/events", content=body, headers={"Content-Type": "text/plain;charset=UTF-8"})
    assert resp.status_code == 204
    assert len(client.get("/events").json()["events"]) == 1


@pytest.mark.parametrize("body", ['{"events": []}', "{}", '{"events": null}'])
def test_post_empty_batch_is_no_content(client, body) -> None:
    resp = client.post("/events", content=body)
    assert resp.status_code == 204


@pytest.mark.parametrize(
    "body",
    [
        '{"events": [invalid json]}',
        "",
        "[]",
        '{"events": {"url": "x"}}',
        '{"events": [{"ts_utc": "123", "url": "https://a", "type": "click"}]}',
        '{"events": [{"ts_utc": 1, "url": "https://a", "type": "click", "data": [1, 2]}]}',
        '{"events": [{"ts_utc": 1180591620717411303424, "url": "https://a", "type": "click"}]}',
        '{"events": [{"ts_utc": 1, "url": "https://a", "type": "click", "data": {"x": NaN}}]}',
        '{"events": [{"ts_utc": 1, "url": "https://a", "type": "click", "data": {"x": [Infinity]}}]}',
        '{"events": [{"ts_utc": 1, "url": "https://a", "type": "click", "data": {"x": 1e400}}]}',
    ],
)
def test_post_malformed_body_is_client_error(client, body) -> None:
    resp = client.post("/events", content=body)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid JSON format"


def test_post_non_finite_data_rejects_whole_batch(client) -> None:
    body = '{"events": [' + json.dumps(_event(1)) + ', {"ts_utc": 2, "url": "https://a", "type": "click", "data": {"ratio": NaN}}]}'
    resp = client.post("/events", content=body)
    assert resp.status_code == 400

    assert client.get("/events").json() == {"events": []}


def test_post_invalid_event_is_server_error_and_stores_nothing(client) -> None:
    batch = {"events": [_event(1), _event(2), _event(3, type="scroll")]}
    resp = client.post("/events", json=batch)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to store events"

    assert client.get("/events").json() == {"events": []}


@pytest.mark.parametrize(
    "event",
    [
        _event(1, url=""),
        _event(0),
        _event(1, type=""),
    ],
)
def test_post_semantically_invalid_event_is_server_error(client, event) -> None:
    resp = client.post("/events", json={"events": [event]})
    assert resp.status_code == 500


def test_post_input_events_are_deduplicated(client) -> None:
    typing = [
        _event(1, "input", field_id="form>input#q", data={"value": "h"}),
        _event(2, "input", field_id="form>input#q", data={"value": "hello"}),
    ]
    for event in typing:
        assert client.post("/events", json={"events": [event]}).status_code == 204

    events = client.get("/events", params={"type": "input"}).json()["events"]
    assert len(events) == 1
    assert events[0]["data"] == {"value": "hello"}
    assert events[0]["ts_utc"] == 2


def test_get_empty_store_returns_empty_list(client) -> None:
    resp = client.get("/events")
    assert resp.status_code == 200
    assert resp.json() == {"events": []}


@pytest.mark.parametrize(
    "params",
    [
        {"since": "yesterday"},
        {"until": "1.5"},
        {"limit": "0"},
        {"limit": "-3"},
        {"limit": "ten"},
        {"since": "99999999999999999999"},
        {"until": "-99999999999999999999"},
        {"limit": "99999999999999999999"},
        {"since": "9223372036854775808"},
    ],
)
def test_get_invalid_params_are_client_errors(client, params) -> None:
    resp = client.get("/events", params=params)
    assert resp.status_code == 400


def test_get_accepts_int64_bounds(client) -> None:
    client.post("/events", json={"events": [_event(1)]})

    resp = client.get("/events", params={"since": "-9223372036854775808", "until": "9223372036854775807"})
    assert resp.status_code == 200
    assert len(resp.json()["events"]) == 1


def test_get_unknown_type_is_server_error(client) -> None:
    resp = client.get("/events", params={"type": "scroll"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to retrieve events"


def test_get_empty_params_are_ignored(client) -> None:
    client.post("/events", json={"events": [_event(1), _event(2)]})

    resp = client.get("/events?type=&since=&until=&limit=")
    assert resp.status_code == 200
    assert len(resp.json()["events"]) == 2


def test_get_limit_and_until(client) -> None:
    client.post("/events", json={"events": [_event(ts) for ts in range(1, 8)]})

    resp = client.get("/events", params={"limit": "2", "until": "5"})
    assert [e["ts_utc"] for e in resp.json()["events"]] == [5, 4]


def test_get_event_shape(client) -> None:
    client.post("/events", json={"events": [_event(42, title=None, session_id=None)]})

    event = client.get("/events").json()["events"][0]
    assert set(event) == {"id", "ts_utc", "ts_iso", "url", "title", "type", "data", "session_id", "field_id"}
    assert event["title"] is None
    assert event["session_id"] is None


def test_delete_removes_everything(client) -> None:
    client.post("/events", json={"events": [_event(1), _event(2)]})

    resp = client.delete("/events")
    assert resp.status_code == 200
    body = resp.json()
    assert body["deleted_count"] == 2
    assert "2" in body["message"]
    assert client.get("/events").json() == {"events": []}


@pytest.mark.parametrize("method", ["PUT", "PATCH"])
def test_other_methods_not_allowed(client, method) -> None:
    resp = client.request(method, "/events")
    assert resp.status_code == 405
