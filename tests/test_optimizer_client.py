"""Tests for the optimization engine HTTP client."""

import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import Mock

import pytest
import requests

from invopt.services.item_catalog import ItemSnapshot
from invopt.services.optimizer_client import OptimizerClient, OptimizerError, build_payload, chunk

URL = "http://optimizer.test/optimize"


def response(status_code=200, content=b""):
    resp = Mock(status_code=status_code, encoding="utf-8")
    resp.iter_content.return_value = [content[i:i + 4] for i in range(0, len(content), 4)]
    return resp


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(session):
    return OptimizerClient(URL, timeout=120, connect_timeout=15, session=session)


class TrickleHandler(BaseHTTPRequestHandler):
    """Answers with valid JSON, one byte at a time."""

    body = b'[{"item_id": 1, "eoq": 5}]      '
    delay = 0.15

    def do_POST(self):
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            for byte in self.body:
                self.wfile.write(bytes([byte]))
                self.wfile.flush()
                time.sleep(self.delay)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args):
        pass


def direct_session():
    session = requests.Session()
    # talk to the local server even when a proxy is configured
    session.trust_env = False
    return session


@pytest.fixture
def trickle_url():
    server = ThreadingHTTPServer(("127.0.0.1", 0), TrickleHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_port}/optimize"
    server.shutdown()
    server.server_close()


class TestOptimizeBatch:
    """Tests for OptimizerClient.optimize_batch."""

    def test_returns_decoded_body(self, client, session):
        resp = response(content=b'[{"item_id": 1, "eoq": 5}]')
        session.post.return_value = resp
        payload = {"job_id": 1, "items": [{"item_id": 1}]}

        assert client.optimize_batch(payload) == [{"item_id": 1, "eoq": 5}]
        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args == (URL,)
        assert kwargs["json"] == payload
        assert kwargs["timeout"] == (15, 120)
        assert kwargs["stream"] is True
        resp.close.assert_called_once()

    def test_non_2xx_status(self, client, session):
        session.post.return_value = response(status_code=500, content=b"Internal Server Error")

        with pytest.raises(OptimizerError) as exc_info:
            client.optimize_batch({"job_id": 1, "items": []})

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "HTTP 500: Internal Server Error"

    def test_error_body_is_truncated(self, client, session):
        session.post.return_value = response(status_code=502, content=b"x" * 2000)

        with pytest.raises(OptimizerError) as exc_info:
            client.optimize_batch({"job_id": 1, "items": []})

        assert len(exc_info.value.body) == 500

    def test_invalid_json(self, client, session):
        session.post.return_value = response(content=b"<html>")

        with pytest.raises(OptimizerError, match="Invalid JSON"):
            client.optimize_batch({"job_id": 1, "items": []})

    def test_timeout(self, client, session):
        session.post.side_effect = requests.exceptions.ReadTimeout("read timed out")

        with pytest.raises(OptimizerError, match="timed out"):
            client.optimize_batch({"job_id": 1, "items": []})

    def test_connection_error(self, client, session):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(OptimizerError, match="Request failed"):
            client.optimize_batch({"job_id": 1, "items": []})

    def test_slow_body_is_cut_off_at_time_limit(self, trickle_url):
        client = OptimizerClient(trickle_url, timeout=1.0, connect_timeout=1.0, session=direct_session())
        started = time.monotonic()

        with pytest.raises(OptimizerError, match="time limit"):
            client.optimize_batch({"job_id": 1, "items": [{"item_id": 1}]})

        # the full body would take about 4.8s to arrive
        assert time.monotonic() - started < 2.5
        client.close()

    def test_slow_body_within_time_limit(self, trickle_url, monkeypatch):
        monkeypatch.setattr(TrickleHandler, "delay", 0.0)
        client = OptimizerClient(trickle_url, timeout=5.0, connect_timeout=1.0, session=direct_session())

        assert client.optimize_batch({"job_id": 1, "items": []}) == [{"item_id": 1, "eoq": 5}]
        client.close()

    def test_close(self, client, session):
        client.close()
        session.close.assert_called_once()


class TestBuildPayload:
    """Tests for build_payload."""

    def test_includes_parameters(self):
        items = [ItemSnapshot(item_id=3, values={"unit_cost": 1.0})]

        payload = build_payload(9, items, 90, 0.95)

        assert payload == {
            "job_id": 9,
            "horizon_days": 90,
            "service_level": 0.95,
            "items": [{"item_id": 3, "unit_cost": 1.0}],
        }

    @pytest.mark.parametrize("horizon, level", [(0, 1.0), (-5, 0.0), (None, None), (0, 1.5)])
    def test_omits_out_of_range_parameters(self, horizon, level):
        payload = build_payload(1, [], horizon, level)
        assert payload == {"job_id": 1, "items": []}


class TestChunk:
    """Tests for chunk."""

    def test_contiguous_batches(self):
        items = [ItemSnapshot(item_id=i) for i in range(1, 451)]

        batches = chunk(items, 200)

        assert [len(b) for b in batches] == [200, 200, 50]
        assert [item.item_id for b in batches for item in b] == list(range(1, 451))

    def test_empty(self):
        assert chunk([], 200) == []

    def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            chunk([ItemSnapshot(item_id=1)], 0)
