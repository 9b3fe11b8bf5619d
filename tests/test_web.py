import pytest

from loan_lab_web.app import app


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


MORTGAGE = {"balance": 300000, "apr": 6.5, "years_remaining": 28}


def test_health(client):
    assert client.get("/api/health").get_json() == {"status": "ok"}


def test_payment_endpoint(client):
    data = client.post("/api/payment", json={"balance": 10000, "apr": 0, "n_months": 10}).get_json()
    assert data == {"payment": 1000.0, "months": 10}


def test_payment_endpoint_from_years(client):
    data = client.post("/api/payment", json={"balance": 300000, "apr": 6.5, "years": 28}).get_json()
    assert data["months"] == 336
    assert data["payment"] == pytest.approx(1941.05, abs=0.5)


def test_payment_endpoint_reports_rounded_months(client):
    data = client.post("/api/payment", json={"balance": 10000, "apr": 0, "n_months": 9.6}).get_json()
    assert data == {"payment": 1000.0, "months": 10}


def test_payment_endpoint_not_computable(client):
    data = client.post("/api/payment", json={"balance": -5, "apr": 5, "n_months": 12}).get_json()
    assert data["payment"] is None


def test_amortization_endpoint(client):
    response = client.post("/api/amortization", json=MORTGAGE)
    assert response.status_code == 200
    data = response.get_json()
    assert data["summary"]["payoff_month"] == 336
    assert len(data["rows"]) == 336
    assert data["rows"][0]["month"] == 1


def test_amortization_endpoint_with_month_extras(client):
    body = dict(MORTGAGE, extra_monthly=200, start_month=1, lump_sums=[{"month": 12, "amount": 10000}])
    data = client.post("/api/amortization", json=body).get_json()
    assert data["summary"]["payoff_month"] < 336
    assert data["rows"][11]["extra_lump"] == 10000.0
    assert data["rows"][0]["extra_monthly"] == 200.0


def test_amortization_endpoint_with_year_extras(client):
    body = dict(MORTGAGE, extra_monthly=200, extra_start_years=1, lump_sums_years=[{"years": 2, "amount": 5000}])
    data = client.post("/api/amortization", json=body).get_json()
    assert data["rows"][10]["extra_monthly"] == 0.0
    assert data["rows"][11]["extra_monthly"] == 200.0
    assert data["rows"][23]["extra_lump"] == 5000.0


def test_amortization_endpoint_mixes_month_and_year_extras(client):
    body = dict(
        MORTGAGE,
        extra_monthly=200,
        extra_start_years=0,
        lump_sums=[{"month": 12, "amount": 10000}],
        lump_sums_years=[{"years": 2, "amount": 5000}],
    )
    rows = client.post("/api/amortization", json=body).get_json()["rows"]
    assert rows[0]["extra_monthly"] == 200.0
    assert rows[11]["extra_lump"] == 10000.0
    assert rows[23]["extra_lump"] == 5000.0


def test_amortization_endpoint_adds_lumps_landing_in_same_month(client):
    body = dict(
        MORTGAGE,
        lump_sums=[{"month": 12, "amount": 1000}],
        lump_sums_years=[{"years": 1, "amount": 2000}],
    )
    rows = client.post("/api/amortization", json=body).get_json()["rows"]
    assert rows[11]["extra_lump"] == 3000.0


def test_amortization_endpoint_metric_series(client):
    data = client.post("/api/amortization?metric=balance", json=MORTGAGE).get_json()
    assert data["series"]["months"][:3] == [1, 2, 3]
    assert data["series"]["values"][-1] == pytest.approx(0.0, abs=0.01)


def test_amortization_endpoint_infeasible_returns_nulls(client):
    data = client.post("/api/amortization", json=dict(MORTGAGE, current_payment=0)).get_json()
    assert data["rows"] == []
    assert data["summary"]["payoff_month"] is None
    assert data["summary"]["total_interest"] is None
    assert data["summary"]["negative_amortization"] is True


def test_refinance_endpoint(client):
    body = dict(MORTGAGE, refi_years=2, new_apr=5.2, new_term_years=30, estimate_costs=True)
    data = client.post("/api/refinance", json=body).get_json()
    assert data["summary"]["refinance_month"] == 24
    assert data["rows"][24]["month"] == 25
    assert data["rows"][24]["cumulative_interest"] >= data["rows"][23]["cumulative_interest"]


def test_compare_endpoint(client):
    body = {
        "baseline": MORTGAGE,
        "scenario": dict(MORTGAGE, type="extra", extra_monthly=200, start_month=1),
    }
    data = client.post("/api/compare", json=body).get_json()
    assert data["months_saved"] > 0
    assert data["interest_saved"] > 0
    assert data["negative_amortization_warning"] is False


def test_compare_endpoint_refinance(client):
    body = {
        "baseline": MORTGAGE,
        "scenario": dict(MORTGAGE, type="refinance", refi_years=2, new_apr=5.2, new_term_years=20, costs=3000),
    }
    data = client.post("/api/compare", json=body).get_json()
    assert data["interest_saved"] > 0


def test_rows_are_truncated_to_max_rows(client):
    app.config["MAX_ROWS"] = 12
    try:
        data = client.post("/api/amortization", json=MORTGAGE).get_json()
    finally:
        app.config["MAX_ROWS"] = 1200
    assert len(data["rows"]) == 12
    assert data["truncated"] == 336 - 12


@pytest.mark.parametrize(
    "path, body",
    [
        ("/api/amortization", {"apr": 5, "years_remaining": 10}),
        ("/api/amortization", {"balance": "abc", "apr": 5, "years_remaining": 10}),
        ("/api/amortization", {"balance": 1000, "apr": 5}),
        ("/api/refinance", {"balance": 1000, "apr": 5, "years_remaining": 10}),
        ("/api/compare", {"baseline": MORTGAGE}),
        ("/api/compare", {"baseline": MORTGAGE, "scenario": {"type": "balloon"}}),
        ("/api/amortization", dict(MORTGAGE, extra_monthly=200)),
        ("/api/amortization", dict(MORTGAGE, extra_monthly=200, start_month=1, extra_start_years=0)),
        ("/api/amortization", dict(MORTGAGE, lump_sums="12:1000")),
        ("/api/amortization", dict(MORTGAGE, lump_sums=[5])),
        ("/api/amortization", dict(MORTGAGE, lump_sums=[{"amount": 1000}])),
        ("/api/amortization", dict(MORTGAGE, lump_sums=[{"month": 1.5, "amount": 1000}])),
        ("/api/amortization", dict(MORTGAGE, lump_sums_years=[{"amount": 1000}])),
        ("/api/amortization", dict(MORTGAGE, limit_months=[12])),
    ],
)
def test_bad_requests(client, path, body):
    response = client.post(path, json=body)
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_non_json_body_is_rejected(client):
    response = client.post("/api/amortization", data="nope", content_type="text/plain")
    assert response.status_code == 400


def test_unknown_metric_is_rejected(client):
    response = client.post("/api/amortization?metric=color", json=MORTGAGE)
    assert response.status_code == 400
