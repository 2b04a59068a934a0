import pytest
from fastapi.testclient import TestClient

from api.main import app, reset_state

client = TestClient(app)

@pytest.fixture(autouse=True)
def _fresh_api():
    reset_state()
    yield
    reset_state()

def test_health():
    assert client.get("/health").json() == {"ok": True}

def test_universe_reports_metadata_and_cold_state():
    r = client.post("/universe", json={"expressions": ["a=2", "b=3", "c=a+b", "y = c x", ""]})
    assert r.status_code == 200
    data = r.json()
    assert data["stale"] is False
    assert data["state"][:3] == [2.0, 3.0, 5.0]
    assert data["state"][3] is None
    assert data["metadata"][3] == {"type": "curve", "hot": True, "dependent_var": "y"}
    assert data["metadata"][4]["type"] == "novisual"
    assert data["priority"][-1] == 4
    assert any(step["kind"] == "dependency_order" for step in data["trace"])

def test_cycle_is_422_with_names():
    r = client.post("/universe", json={"expressions": ["a = b", "b = a"]})
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["kind"] == "circular_dependency"
    assert set(detail["names"]) == {"a", "b"}
    assert set(detail["indices"]) == {0, 1}

def test_unsupported_feature_is_422():
    r = client.post("/universe", json={"expressions": ["y' = x", "q = y' + 1"]})
    assert r.status_code == 422
    assert r.json()["detail"]["kind"] == "unsupported_feature"
    assert r.json()["detail"]["indices"] == [1]

def test_derivative_with_coefficient_is_422():
    r = client.post("/universe", json={"expressions": ["a = 2y' + x"]})
    assert r.status_code == 422
    assert r.json()["detail"]["kind"] == "unsupported_feature"
    assert r.json()["detail"]["indices"] == [0]

def test_parse_error_without_fallback_is_400():
    r = client.post("/universe", json={"expressions": ["a = (1 +"]})
    assert r.status_code == 400
    assert r.json()["detail"]["kind"] == "parse_error"

def test_parse_error_falls_back_to_last_universe():
    ok = client.post("/universe", json={"expressions": ["a = 7"]})
    assert ok.status_code == 200
    r = client.post("/universe", json={"expressions": ["a = 7 +"]})
    assert r.status_code == 200
    assert r.json()["stale"] is True
    assert r.json()["state"] == [7.0]

def test_sample_chunk_with_field_seed():
    r = client.post("/sample", json={
        "expressions": ["y = x^2", "y' = 1", "1/x"],
        "chunk": [0, 0],
        "initial_condition": {"y0": 0, "t0": 0},
    })
    assert r.status_code == 200
    data = r.json()
    assert data["curve_indices"] == [0, 2]
    assert data["field_indices"] == [1]
    assert data["rows"][0] == [0.0, None]
    assert data["ivp_rows"][0] == [0.0]
    assert data["grid"][0][0] == [1.0]
    assert len(data["xs"]) == len(data["rows"])
