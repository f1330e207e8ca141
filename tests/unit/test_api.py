"""Tests for the HTTP and WebSocket surface."""

import json

import pytest
from fastapi.testclient import TestClient

from scanner_operator.app import create_app
from scanner_operator.config import Settings


@pytest.fixture
def client(store):
    with TestClient(create_app(Settings(), store=store)) as client:
        yield client


def _body(image_id, report):
    return {"imageId": image_id, "report": report}


class TestScanResults:
    def test_put_and_get(self, client, sample_bom):
        response = client.put("/scan-results", json=_body("sha256:a", sample_bom))

        assert response.status_code == 200
        assert response.json() == {"imageId": "sha256:a", "report": sample_bom}

        response = client.get("/scan-results/sha256:a")
        assert response.status_code == 200
        assert response.json()["report"] == sample_bom

    def test_image_id_with_slashes(self, client, sample_bom):
        image_id = "docker.io/library/nginx@sha256:0d17b565"
        client.put("/scan-results", json=_body(image_id, sample_bom))

        response = client.get(f"/scan-results/{image_id}")

        assert response.status_code == 200
        assert response.json()["imageId"] == image_id

    def test_put_overwrites(self, client, store, sample_bom):
        client.put("/scan-results", json=_body("sha256:a", sample_bom))
        sample_bom["version"] = 2
        client.put("/scan-results", json=_body("sha256:a", sample_bom))

        assert client.get("/scan-results/sha256:a").json()["report"]["version"] == 2
        assert len(store.list()) == 1

    def test_list(self, client, sample_bom):
        assert client.get("/scan-results").json() == []

        client.put("/scan-results", json=_body("sha256:a", sample_bom))
        client.put("/scan-results", json=_body("sha256:b", sample_bom))

        ids = {item["imageId"] for item in client.get("/scan-results").json()}
        assert ids == {"sha256:a", "sha256:b"}

    def test_get_missing(self, client):
        assert client.get("/scan-results/sha256:nope").status_code == 404

    def test_delete(self, client, sample_bom):
        client.put("/scan-results", json=_body("sha256:a", sample_bom))

        assert client.delete("/scan-results/sha256:a").status_code == 204
        assert client.get("/scan-results/sha256:a").status_code == 404
        # Deleting again is still a success.
        assert client.delete("/scan-results/sha256:a").status_code == 204

    def test_invalid_report_rejected(self, client, store):
        response = client.put("/scan-results", json=_body("img1", "{not valid json}"))

        assert response.status_code == 400
        assert store.list() == []

    def test_non_cyclonedx_report_rejected(self, client, store):
        response = client.put("/scan-results", json=_body("img1", {"spdxVersion": "SPDX-2.3"}))

        assert response.status_code == 400
        assert store.list() == []

    def test_missing_image_id(self, client, sample_bom):
        response = client.put("/scan-results", json={"report": sample_bom})

        assert response.status_code == 400

    def test_report_stored_as_sent(self, client, store):
        """Spacing and number formatting inside the report are kept verbatim."""
        report = '{"bomFormat": "CycloneDX", "specVersion": "1.5", "x": 5.50}'
        body = '{"imageId":"img1","report":' + report + "}"

        response = client.put("/scan-results", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert store.get("img1").report == report
        assert report in client.get("/scan-results/img1").text

    def test_large_numbers_kept_verbatim(self, client, store):
        report = '{"bomFormat":"CycloneDX","specVersion":"1.5","x":1e400}'
        body = '{"report": ' + report + ', "imageId": "img1"}'

        response = client.put("/scan-results", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert store.get("img1").report == report
        assert client.get("/scan-results").text == '[{"imageId":"img1","report":' + report + "}]"

    @pytest.mark.parametrize("token", ["NaN", "Infinity", "-Infinity"])
    def test_non_json_constants_rejected(self, client, store, token):
        body = '{"imageId":"img1","report":{"bomFormat":"CycloneDX","specVersion":"1.5","x":%s}}' % token

        response = client.put("/scan-results", content=body, headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert store.list() == []

    def test_body_not_json(self, client):
        response = client.put(
            "/scan-results",
            content=b"definitely not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400


class TestSubscribe:
    def test_receives_new_results(self, client, sample_bom):
        with client.websocket_connect("/subscribe") as ws:
            client.put("/scan-results", json=_body("img1", "{not valid json}"))
            client.put("/scan-results", json=_body("img2", sample_bom))

            assert ws.receive_text() == '"img2"'

    def test_messages_in_publish_order(self, client, sample_bom):
        with client.websocket_connect("/subscribe") as ws:
            client.put("/scan-results", json=_body("sha256:a", sample_bom))
            assert json.loads(ws.receive_text()) == "sha256:a"

            client.put("/scan-results", json=_body("sha256:b", sample_bom))
            assert json.loads(ws.receive_text()) == "sha256:b"

    def test_every_subscriber_receives(self, client, sample_bom):
        with client.websocket_connect("/subscribe") as first, client.websocket_connect("/subscribe") as second:
            client.put("/scan-results", json=_body("sha256:a", sample_bom))

            assert first.receive_text() == '"sha256:a"'
            assert second.receive_text() == '"sha256:a"'


class TestHealth:
    def test_healthz(self, client):
        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_readyz(self, client):
        assert client.get("/readyz").json() == {"status": "ready"}


class TestMetrics:
    def test_records_response_duration_per_route(self, client):
        client.get("/healthz")
        client.get("/scan-results/sha256:missing")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert 'http_response_duration_seconds_count{path="/healthz",method="GET"}' in response.text
        assert 'http_response_duration_seconds_count{path="/scan-results/{image_id}",method="GET"}' in response.text

    def test_unmatched_paths_not_recorded(self, client):
        assert client.get("/no-such-page").status_code == 404

        assert "no-such-page" not in client.get("/metrics").text


class TestStatic:
    @pytest.mark.parametrize(
        ("path", "content_type"),
        [
            ("/", "text/html"),
            ("/bundle.js", "text/javascript"),
            ("/output.css", "text/css"),
        ],
    )
    def test_serves_ui(self, client, path, content_type):
        response = client.get(path)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(content_type)
