"""
Tests for the travel request endpoints under ``/api/solicitudes-viaje``.

Covers creation with expense lines, list visibility, the approval chain
through the ``approve_travel_request`` procedure, rejection, completion,
expenses with receipts and attachments.
"""

from __future__ import annotations

import pytest

from conecta2.baas.errors import BaasError

BASE = "/api/solicitudes-viaje"


def _approve(api, seed, request_id, notes=None):
    body = {"notes": notes} if notes is not None else None
    return api.post(f"{BASE}/{request_id}/aprobar", json=body, headers=seed.users.purchases.headers)


# =============================================================================
# Create and list
# =============================================================================


class TestCreate:
    def test_creates_request_with_expenses(self, api, baas, seed, travel_payload):
        response = api.post(BASE, json=travel_payload(), headers=seed.users.requester.headers)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Solicitud de viaje creada exitosamente"
        assert body["data"]["status"] == "pendiente"
        assert body["data"]["status_label"] == "Pendiente"
        expenses = api.get(f"{BASE}/{body['data']['id']}/gastos", headers=seed.users.requester.headers).json()
        assert sorted(e["expense_type"] for e in expenses) == ["alojamiento", "pasaje_aereo"]

    def test_end_before_start(self, api, baas, seed, travel_payload):
        response = api.post(
            BASE,
            json=travel_payload(start_date="2024-09-14", end_date="2024-09-10"),
            headers=seed.users.requester.headers,
        )

        assert response.status_code == 422
        assert baas.faults.table_calls("travel_requests") == []

    def test_unknown_expense_type(self, api, baas, seed, travel_payload):
        payload = travel_payload(expenses=[{"expense_type": "crucero", "estimated_amount": 10}])

        response = api.post(BASE, json=payload, headers=seed.users.requester.headers)

        assert response.status_code == 422

    def test_expense_failure_deletes_request(self, api, baas, seed, travel_payload):
        baas.faults.tables[("travel_expenses", "insert")] = BaasError("expense rejected", status=400)

        response = api.post(BASE, json=travel_payload(), headers=seed.users.requester.headers)

        assert response.status_code == 502
        assert response.json()["detail"] == "Error al registrar los gastos de la solicitud: expense rejected"
        assert baas.faults.table_calls("travel_requests") == ["insert", "delete"]
        assert baas.table("travel_requests").select("id").execute().data == []

    def test_without_expenses(self, api, baas, seed, travel_payload):
        response = api.post(BASE, json=travel_payload(expenses=[]), headers=seed.users.requester.headers)

        assert response.status_code == 201
        assert baas.faults.table_calls("travel_expenses") == []


class TestVisibility:
    def test_requester_sees_only_own(self, api, seed, create_travel):
        own = create_travel()
        create_travel(user=seed.users.other, first_name="Maria", last_name="Lopez")

        response = api.get(BASE, headers=seed.users.requester.headers)

        assert [row["id"] for row in response.json()] == [own["id"]]
        assert response.json()[0]["requester"]["email"] == seed.users.requester.email

    def test_approver_sees_all(self, api, seed, create_travel):
        create_travel()
        create_travel(user=seed.users.other)

        response = api.get(BASE, headers=seed.users.purchases.headers)

        assert len(response.json()) == 2

    def test_detail(self, api, seed, create_travel):
        request = create_travel()

        response = api.get(f"{BASE}/{request['id']}", headers=seed.users.requester.headers)

        body = response.json()
        assert body["destination"] == "Cusco"
        assert body["start_date"] == "2024-09-10"
        assert body["laboratory"]["name"] == "Laboratorio de Microbiología"
        assert len(body["travel_expenses"]) == 2

    def test_detail_unknown(self, api, seed):
        response = api.get(f"{BASE}/no-existe", headers=seed.users.requester.headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Solicitud de viaje no encontrada"


# =============================================================================
# Approval chain
# =============================================================================


class TestApproval:
    def test_two_step_approval_then_complete(self, api, baas, seed, create_travel):
        request = create_travel()

        first = _approve(api, seed, request["id"], notes="Visto bueno")
        second = _approve(api, seed, request["id"])
        completed = api.post(f"{BASE}/{request['id']}/completar", headers=seed.users.purchases.headers)

        assert first.json()["message"] == "Solicitud aprobada exitosamente"
        assert first.json()["data"]["status"] == "aprobado_por_gerente"
        assert first.json()["data"]["manager_notes"] == "Visto bueno"
        assert second.json()["data"]["status"] == "aprobado_por_finanzas"
        assert second.json()["data"]["finance_approver_id"] == seed.users.purchases.id
        assert completed.json()["message"] == "Solicitud marcada como completada"
        assert completed.json()["data"]["status"] == "completado"
        assert baas.faults.table_calls("rpc") == ["approve_travel_request", "approve_travel_request"]

    def test_approve_closed_request(self, api, seed, create_travel):
        request = create_travel()
        api.post(f"{BASE}/{request['id']}/rechazar", json={"notes": "Sin fondos"}, headers=seed.users.purchases.headers)

        response = _approve(api, seed, request["id"])

        assert response.status_code == 409

    def test_requester_cannot_approve(self, api, seed, create_travel):
        request = create_travel()

        response = api.post(f"{BASE}/{request['id']}/aprobar", headers=seed.users.requester.headers)

        assert response.status_code == 403

    def test_procedure_failure(self, api, baas, seed, create_travel):
        request = create_travel()
        baas.faults.rpcs["approve_travel_request"] = BaasError("function failed", code="P0001", status=400)

        response = _approve(api, seed, request["id"])

        assert response.status_code == 502
        assert response.json()["detail"] == "Error al aprobar la solicitud: function failed"

    def test_complete_requires_finance_approval(self, api, seed, create_travel):
        request = create_travel()
        _approve(api, seed, request["id"])

        response = api.post(f"{BASE}/{request['id']}/completar", headers=seed.users.purchases.headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "Solo las solicitudes aprobadas por finanzas pueden completarse"

    def test_complete_row_hidden_by_policy(self, api, baas, seed, create_travel):
        request = create_travel()
        baas.table("travel_requests").update({"status": "aprobado_por_finanzas"}).eq("id", request["id"]).execute()
        baas.faults.hidden.add(("travel_requests", "update"))

        response = api.post(f"{BASE}/{request['id']}/completar", headers=seed.users.purchases.headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Solicitud de viaje no encontrada"


class TestReject:
    @pytest.mark.parametrize("body", [{}, {"notes": ""}, {"notes": "   "}])
    def test_blank_reason_makes_no_call(self, api, baas, seed, create_travel, body):
        request = create_travel()
        baas.faults.calls.clear()

        response = api.post(f"{BASE}/{request['id']}/rechazar", json=body, headers=seed.users.purchases.headers)

        assert response.status_code == 422
        assert response.json()["detail"] == "Por favor ingrese un motivo para el rechazo"
        assert baas.faults.table_calls("travel_requests") == []

    def test_reject(self, api, seed, create_travel):
        request = create_travel()

        response = api.post(
            f"{BASE}/{request['id']}/rechazar",
            json={"notes": "  Presupuesto agotado "},
            headers=seed.users.purchases.headers,
        )

        assert response.json()["message"] == "Solicitud rechazada"
        assert response.json()["data"]["status"] == "rechazado"
        assert response.json()["data"]["manager_notes"] == "Presupuesto agotado"

    def test_reject_completed(self, api, baas, seed, create_travel):
        request = create_travel()
        baas.table("travel_requests").update({"status": "completado"}).eq("id", request["id"]).execute()

        response = api.post(f"{BASE}/{request['id']}/rechazar", json={"notes": "Tarde"}, headers=seed.users.purchases.headers)

        assert response.status_code == 409

    def test_reject_row_hidden_by_policy(self, api, baas, seed, create_travel):
        request = create_travel()
        baas.faults.hidden.add(("travel_requests", "update"))

        response = api.post(f"{BASE}/{request['id']}/rechazar", json={"notes": "Sin fondos"}, headers=seed.users.purchases.headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Solicitud de viaje no encontrada"


# =============================================================================
# Expenses
# =============================================================================


class TestExpenses:
    def test_add_with_receipt(self, api, baas, seed, create_travel):
        request = create_travel()

        response = api.post(
            f"{BASE}/{request['id']}/gastos",
            data={"expense_type": "viaticos", "estimated_amount": "120.5", "currency": "USD"},
            files={"receipt": ("boleta taxi.jpg", b"jpeg", "image/jpeg")},
            headers=seed.users.requester.headers,
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Gasto agregado exitosamente"
        expense = response.json()["data"]
        assert expense["currency"] == "USD"
        assert expense["receipt_path"].startswith(f"{request['id']}/")
        assert expense["receipt_path"].endswith("-boleta_taxi.jpg")
        assert baas.storage.from_("travel-receipts").exists(expense["receipt_path"])

        url = api.get(f"{BASE}/gastos/{expense['id']}/comprobante", headers=seed.users.requester.headers)
        assert api.get(url.json()["url"]).content == b"jpeg"

    def test_add_without_receipt(self, api, seed, create_travel):
        request = create_travel()

        response = api.post(
            f"{BASE}/{request['id']}/gastos",
            data={"expense_type": "otros", "estimated_amount": "15"},
            headers=seed.users.requester.headers,
        )

        expense = response.json()["data"]
        assert expense["receipt_path"] is None
        missing = api.get(f"{BASE}/gastos/{expense['id']}/comprobante", headers=seed.users.requester.headers)
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Comprobante no encontrado"

    def test_bad_currency(self, api, seed, create_travel):
        request = create_travel()

        response = api.post(
            f"{BASE}/{request['id']}/gastos",
            data={"expense_type": "otros", "estimated_amount": "15", "currency": "ARS"},
            headers=seed.users.requester.headers,
        )

        assert response.status_code == 422

    def test_failed_insert_removes_receipt(self, api, baas, seed, create_travel):
        request = create_travel()
        baas.faults.tables[("travel_expenses", "insert")] = BaasError("insert failed")

        response = api.post(
            f"{BASE}/{request['id']}/gastos",
            data={"expense_type": "viaticos", "estimated_amount": "10"},
            files={"receipt": ("r.pdf", b"pdf", "application/pdf")},
            headers=seed.users.requester.headers,
        )

        assert response.status_code == 502
        assert ("storage:travel-receipts", "remove") in baas.faults.calls

    def test_delete_removes_receipt(self, api, baas, seed, create_travel):
        request = create_travel()
        expense = api.post(
            f"{BASE}/{request['id']}/gastos",
            data={"expense_type": "viaticos", "estimated_amount": "10"},
            files={"receipt": ("r.pdf", b"pdf", "application/pdf")},
            headers=seed.users.requester.headers,
        ).json()["data"]

        response = api.delete(f"{BASE}/gastos/{expense['id']}", headers=seed.users.requester.headers)

        assert response.json()["message"] == "Gasto eliminado exitosamente"
        assert not baas.storage.from_("travel-receipts").exists(expense["receipt_path"])
        remaining = api.get(f"{BASE}/{request['id']}/gastos", headers=seed.users.requester.headers).json()
        assert len(remaining) == 2

    def test_delete_unknown(self, api, seed):
        response = api.delete(f"{BASE}/gastos/no-existe", headers=seed.users.requester.headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Gasto no encontrado"


# =============================================================================
# Attachments
# =============================================================================


class TestAttachments:
    def test_upload_list_and_delete(self, api, baas, seed, create_travel):
        request = create_travel()
        headers = seed.users.requester.headers

        uploaded = api.post(
            f"{BASE}/{request['id']}/adjuntos",
            files=[("files", ("itinerario.pdf", b"vuelo", "application/pdf"))],
            headers=headers,
        ).json()
        attachment_id = uploaded["results"][0]["attachment_id"]
        listed = api.get(f"{BASE}/{request['id']}/adjuntos", headers=headers).json()
        url = api.get(f"{BASE}/adjuntos/{attachment_id}/url", headers=headers).json()["url"]
        deleted = api.delete(f"{BASE}/adjuntos/{attachment_id}", headers=headers)

        assert uploaded["uploaded"] == 1
        assert [row["file_name"] for row in listed] == ["itinerario.pdf"]
        assert "/travel-attachments/" in url
        assert deleted.json()["message"] == "Archivo eliminado exitosamente"
        assert not baas.storage.from_("travel-attachments").exists(f"{request['id']}/itinerario.pdf")
