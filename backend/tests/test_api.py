"""
Tests per gli endpoint API v1 (TestClient su database SQLite).
"""

import uuid
from decimal import Decimal

import pytest

from estimator.core.security import create_access_token


ESTIMATE_PAYLOAD = {
    "client_name": "Mario Rossi",
    "title": "Impianto villetta",
    "deposit_pct": "30",
    "payment_method": "bank_transfer",
    "payment_recipient": "Mario Rossi",
    "line_items": [
        {"description": "Quadro elettrico", "quantity": "1", "unit_price": "1000"},
        {"item_type": "labor", "description": "Posa cavi", "quantity": "0", "labor_hours": "20", "labor_rate": "50"},
    ],
}


@pytest.fixture
def manager_headers(manager, headers_for):
    return headers_for(manager)


@pytest.fixture
def created(client, manager_headers):
    """Preventivo creato via API."""
    response = client.post("/api/v1/estimates", json=ESTIMATE_PAYLOAD, headers=manager_headers)
    assert response.status_code == 201
    return response.json()


# ============================================================
# Tests per sistema e autenticazione
# ============================================================


class TestSystem:
    """Tests per health check e autenticazione."""

    def test_health(self, client):
        """Test health check."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_token(self, client):
        """Test richiesta senza token: 401."""
        response = client.get("/api/v1/estimates")

        assert response.status_code == 401

    def test_invalid_token(self, client):
        """Test token non firmato con la chiave corretta: 401."""
        response = client.get("/api/v1/estimates", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_subject_must_be_uuid(self, client):
        """Test subject non UUID: 401."""
        token = create_access_token("mario", ["manager"])

        response = client.get("/api/v1/estimates", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401


# ============================================================
# Tests per preventivi
# ============================================================


class TestEstimatesApi:
    """Tests per gli endpoint dei preventivi."""

    def test_create_and_get(self, client, manager_headers, created):
        """Test creazione con totali e lettura del dettaglio."""
        assert created["status"] == "draft"
        assert created["subtotal"] == "2000.00"
        assert created["deposit_due"] == "600.00"
        assert len(created["line_items"]) == 2

        response = client.get(f"/api/v1/estimates/{created['id']}", headers=manager_headers)

        assert response.status_code == 200
        assert response.json()["number"] == created["number"]

    def test_technician_sees_no_prices(self, client, technician, headers_for, created):
        """Test il tecnico legge il preventivo senza importi."""
        response = client.get(f"/api/v1/estimates/{created['id']}", headers=headers_for(technician))

        assert response.status_code == 200
        body = response.json()
        assert "total" not in body
        assert "unit_price" not in body["line_items"][0]

    def test_technician_cannot_create(self, client, technician, headers_for):
        """Test il tecnico non crea preventivi: 403."""
        response = client.post("/api/v1/estimates", json=ESTIMATE_PAYLOAD, headers=headers_for(technician))

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    def test_client_name_required(self, client, manager_headers):
        """Test senza progetto il nome cliente è obbligatorio: 422."""
        payload = {**ESTIMATE_PAYLOAD, "client_name": None}

        response = client.post("/api/v1/estimates", json=payload, headers=manager_headers)

        assert response.status_code == 422

    def test_recipient_must_be_person(self, client, manager_headers):
        """Test destinatario senza lettere rifiutato: 422."""
        payload = {**ESTIMATE_PAYLOAD, "payment_recipient": "12345"}

        response = client.post("/api/v1/estimates", json=payload, headers=manager_headers)

        assert response.status_code == 422

    def test_update_null_required_field(self, client, manager_headers, created):
        """Test null su un campo obbligatorio: 422 e non errore del database."""
        url = f"/api/v1/estimates/{created['id']}"

        for payload in ({"deposit_pct": None}, {"currency": None}):
            response = client.put(url, json=payload, headers=manager_headers)

            assert response.status_code == 422
            body = response.json()
            assert body["error_code"] == "BUSINESS_VALIDATION_ERROR"
            assert body["fields"] == list(payload)

        assert Decimal(client.get(url, headers=manager_headers).json()["deposit_pct"]) == Decimal("30")

    def test_not_found(self, client, manager_headers):
        """Test preventivo inesistente: 404."""
        response = client.get(f"/api/v1/estimates/{uuid.uuid4()}", headers=manager_headers)

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    def test_list_paginated(self, client, manager_headers, created):
        """Test lista paginata."""
        response = client.get("/api/v1/estimates", headers=manager_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["total_pages"] == 1
        assert body["items"][0]["id"] == created["id"]


# ============================================================
# Tests per transizioni
# ============================================================


class TestTransitionsApi:
    """Tests per gli endpoint di cambio stato."""

    def test_invalid_transition_shape(self, client, manager_headers, created):
        """Test transizione non consentita: 422 con valid=false e motivo."""
        response = client.post(
            f"/api/v1/estimates/{created['id']}/transition",
            json={"target_status": "approved"},
            headers=manager_headers,
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "INVALID_TRANSITION"
        assert body["valid"] is False
        assert body["reason"]

    def test_expected_status_conflict(self, client, manager_headers, created):
        """Test stato atteso non aggiornato: 409."""
        response = client.post(
            f"/api/v1/estimates/{created['id']}/transition",
            json={"target_status": "approved", "expected_status": "sent"},
            headers=manager_headers,
        )

        assert response.status_code == 409
        assert response.json()["current_status"] == "draft"

    def test_validate_and_apply(self, client, manager_headers, created):
        """Test validazione a secco e poi transizione effettiva."""
        url = f"/api/v1/estimates/{created['id']}"

        check = client.post(f"{url}/transition/validate", json={"target_status": "sent"}, headers=manager_headers)
        assert check.json() == {"valid": True, "reason": None}

        response = client.post(f"{url}/transition", json={"target_status": "sent"}, headers=manager_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "sent"

        available = client.get(f"{url}/transitions", headers=manager_headers).json()
        assert available["current_status"] == "sent"
        assert set(available["available"]) == {"approved", "rejected"}

    def test_technician_cannot_transition(self, client, technician, headers_for, created):
        """Test il tecnico non cambia stato: 403."""
        response = client.post(
            f"/api/v1/estimates/{created['id']}/transition",
            json={"target_status": "sent"},
            headers=headers_for(technician),
        )

        assert response.status_code == 403

    def test_locked_edit_rejected(self, client, manager_headers, created):
        """Test modifica prezzi su preventivo approvato: 422 ESTIMATE_LOCKED."""
        url = f"/api/v1/estimates/{created['id']}"
        for target in ("sent", "approved"):
            client.post(f"{url}/transition", json={"target_status": target}, headers=manager_headers)

        response = client.put(url, json={"global_discount_pct": "5"}, headers=manager_headers)

        assert response.status_code == 422
        assert response.json()["error_code"] == "ESTIMATE_LOCKED"


# ============================================================
# Tests per pagamenti
# ============================================================


class TestPaymentsApi:
    """Tests per gli endpoint dei pagamenti."""

    def test_payment_lifecycle(self, client, manager_headers, created):
        """Test registrazione, doppia conferma e rimborso."""
        response = client.post(
            f"/api/v1/estimates/{created['id']}/payments",
            json={"amount": "600", "fees": "6"},
            headers=manager_headers,
        )
        assert response.status_code == 201
        payment_id = response.json()["id"]

        for _ in range(2):
            confirmed = client.post(f"/api/v1/payments/{payment_id}/confirm", headers=manager_headers)
            assert confirmed.status_code == 200
            assert confirmed.json()["status"] == "confirmed"

        estimate = client.get(f"/api/v1/estimates/{created['id']}", headers=manager_headers).json()
        assert estimate["paid_amount"] == "600.00"

        entries = client.get("/api/v1/finance/entries", headers=manager_headers).json()
        assert [e["entry_type"] for e in entries] == ["income"]

        refunded = client.post(
            f"/api/v1/payments/{payment_id}/refund",
            json={"reason": "Lavoro annullato"},
            headers=manager_headers,
        )
        assert refunded.status_code == 200
        assert refunded.json()["status"] == "refunded"

        again = client.post(f"/api/v1/payments/{payment_id}/refund", json={}, headers=manager_headers)
        assert again.status_code == 422
        assert again.json()["error_code"] == "PAYMENT_ALREADY_REFUNDED"

        summary = client.get("/api/v1/finance/summary", headers=manager_headers).json()
        assert summary["net_profit"] == "0.00"

    def test_technician_cannot_list_payments(self, client, technician, headers_for, created):
        """Test il tecnico non vede i pagamenti: 403."""
        response = client.get(
            f"/api/v1/estimates/{created['id']}/payments",
            headers=headers_for(technician),
        )

        assert response.status_code == 403


# ============================================================
# Tests per il listino
# ============================================================


class TestPresetsApi:
    """Tests per gli endpoint del listino voci."""

    def test_preset_into_estimate(self, client, manager_headers, created):
        """Test voce creata nel listino e inserita nel preventivo."""
        response = client.post(
            "/api/v1/presets",
            json={"name": "Presa schuko", "category": "Prese", "description": "Presa 16A", "unit_price": "50"},
            headers=manager_headers,
        )
        assert response.status_code == 201
        preset = response.json()
        assert preset["is_active"] is True

        listed = client.get("/api/v1/presets", params={"search": "schuko"}, headers=manager_headers).json()
        assert [p["id"] for p in listed] == [preset["id"]]

        added = client.post(
            f"/api/v1/estimates/{created['id']}/items/from-preset",
            json={"preset_id": preset["id"], "quantity": "4"},
            headers=manager_headers,
        )
        assert added.status_code == 201
        assert added.json()["line_total"] == "200.00"

        estimate = client.get(f"/api/v1/estimates/{created['id']}", headers=manager_headers).json()
        assert estimate["subtotal"] == "2200.00"

    def test_deactivated_preset_rejected(self, client, manager_headers, created):
        """Test voce disattivata: fuori dall'elenco e non inseribile."""
        preset = client.post(
            "/api/v1/presets",
            json={"name": "Canalina", "description": "Canalina 40x20", "unit_price": "8"},
            headers=manager_headers,
        ).json()

        removed = client.delete(f"/api/v1/presets/{preset['id']}", headers=manager_headers)
        assert removed.status_code == 200
        assert removed.json()["is_active"] is False
        assert client.get("/api/v1/presets", headers=manager_headers).json() == []

        response = client.post(
            f"/api/v1/estimates/{created['id']}/items/from-preset",
            json={"preset_id": preset["id"]},
            headers=manager_headers,
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "PRESET_INACTIVE"

    def test_technician_cannot_read_prices(self, client, technician, headers_for):
        """Test il tecnico non vede il listino: 403."""
        response = client.get("/api/v1/presets", headers=headers_for(technician))

        assert response.status_code == 403
