"""HTTP tests for /api/citas: envelope, auth and role gating."""

from datetime import timedelta

import pytest

from seledental.security_utils import create_jwt_token


def auth_headers(user):
    return {"Authorization": f"Bearer {create_jwt_token({'id': user.id})}"}


BOOKING = {
    "tipoConsulta": "general",
    "categoria": "odontologia_general",
    "fechaHora": "2025-06-10T09:00:00",
    "detalles": "Revisión anual",
}


def post_booking(api, user, **overrides):
    return api.post("/api/citas", json={**BOOKING, **overrides}, headers=auth_headers(user))


class TestAuthentication:
    def test_missing_token(self, api):
        response = api.get("/api/citas/categorias")
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert "Token no proporcionado" in body["mensaje"]

    def test_invalid_token(self, api):
        response = api.get("/api/citas/categorias", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_expired_token(self, api, client_user):
        token = create_jwt_token({"id": client_user.id}, expires_delta=timedelta(seconds=-5))
        response = api.get("/api/citas/categorias", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_unknown_user(self, api):
        token = create_jwt_token({"id": 999})
        response = api.get("/api/citas/categorias", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert "Usuario no encontrado" in response.json()["mensaje"]

    def test_inactive_user(self, api, make_user):
        blocked = make_user("cliente", is_active=False)
        response = api.get("/api/citas/categorias", headers=auth_headers(blocked))
        assert response.status_code == 403

    def test_sub_claim_is_accepted(self, api, client_user):
        token = create_jwt_token({"sub": str(client_user.id)})
        response = api.get("/api/citas/categorias", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200


def test_categories(api, client_user):
    response = api.get("/api/citas/categorias", headers=auth_headers(client_user))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert {"value": "ortodoncia", "label": "Ortodoncia"} in body["datos"]["categorias"]["control"]


def test_security_headers(api, client_user):
    response = api.get("/api/citas/categorias", headers=auth_headers(client_user))
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "no-store" in response.headers["Cache-Control"]


def test_health(api):
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


class TestBookingFlow:
    def test_book_then_slots(self, api, client_user, other_client, notifier):
        response = post_booking(api, client_user)
        assert response.status_code == 201
        body = response.json()
        assert body["mensaje"] == "Cita agendada correctamente"
        assert body["datos"]["cita"]["estado"] == "pendiente"
        assert "nueva_cita" in notifier.names()

        conflict = post_booking(api, other_client, fechaHora="2025-06-10T09:30:00")
        assert conflict.status_code == 409
        assert conflict.json()["mensaje"] == "El horario seleccionado no está disponible"

        assert post_booking(api, other_client, fechaHora="2025-06-10T10:00:00").status_code == 201

        slots = api.get(
            "/api/citas/horarios-disponibles",
            params={"fecha": "2025-06-10"},
            headers=auth_headers(client_user),
        ).json()["datos"]
        assert slots["fecha"] == "2025-06-10"
        assert "09:00" not in slots["horariosDisponibles"]
        assert "11:00" in slots["horariosDisponibles"]

    def test_invalid_body_is_400_with_fields(self, api, client_user):
        response = api.post(
            "/api/citas",
            json={"tipoConsulta": "cosmetica", "categoria": "x"},
            headers=auth_headers(client_user),
        )
        assert response.status_code == 400
        body = response.json()
        assert body["mensaje"] == "Error de validación"
        campos = {e["campo"] for e in body["errores"]}
        assert {"tipoConsulta", "fechaHora"} <= campos

    def test_category_mismatch(self, api, client_user):
        response = post_booking(api, client_user, categoria="protesis")
        assert response.status_code == 400
        assert response.json()["errores"] == [
            {"campo": "categoria", "mensaje": "La categoría no corresponde al tipo de consulta"}
        ]

    def test_receptionist_cannot_book(self, api, receptionist):
        assert post_booking(api, receptionist).status_code == 403

    def test_past_date_slots(self, api, client_user):
        response = api.get(
            "/api/citas/horarios-disponibles",
            params={"fecha": "2025-05-01"},
            headers=auth_headers(client_user),
        )
        assert response.status_code == 400
        assert response.json()["mensaje"] == "No se pueden agendar citas en fechas pasadas"

    def test_details_are_escaped(self, api, client_user):
        response = post_booking(api, client_user, detalles="<script>alert(1)</script>")
        assert response.json()["datos"]["cita"]["detalles"] == "&lt;script&gt;alert(1)&lt;/script&gt;"


class TestLifecycleFlow:
    @pytest.fixture
    def cita_id(self, api, client_user):
        return post_booking(api, client_user).json()["datos"]["cita"]["id"]

    def test_full_pipeline(self, api, cita_id, receptionist, dentist, client_user):
        pending = api.get("/api/citas/pendientes", headers=auth_headers(receptionist)).json()
        assert [c["id"] for c in pending["datos"]["citas"]] == [cita_id]

        dentists = api.get("/api/citas/odontologos", headers=auth_headers(receptionist)).json()
        assert dentists["datos"]["odontologos"][0]["id"] == dentist.id

        assigned = api.put(
            f"/api/citas/{cita_id}/asignar-odontologo",
            json={"odontologoId": dentist.id, "observaciones": "Primera visita"},
            headers=auth_headers(receptionist),
        )
        assert assigned.status_code == 200
        assert assigned.json()["datos"]["cita"]["estado"] == "confirmada"

        mine = api.get("/api/citas/odontologo/mis-citas", headers=auth_headers(dentist)).json()
        assert [c["id"] for c in mine["datos"]["citas"]] == [cita_id]

        started = api.put(f"/api/citas/{cita_id}/iniciar", headers=auth_headers(dentist))
        assert started.json()["datos"]["cita"]["estado"] == "en_proceso"

        done = api.put(
            f"/api/citas/{cita_id}/completar",
            json={"notasOdontologo": "Sin novedades"},
            headers=auth_headers(dentist),
        )
        assert done.json()["datos"]["cita"]["estado"] == "completada"

        again = api.put(f"/api/citas/{cita_id}/cancelar", headers=auth_headers(client_user))
        assert again.status_code == 400

    def test_double_assignment_conflict(self, api, cita_id, receptionist, other_receptionist, dentist, other_dentist):
        first = api.put(
            f"/api/citas/{cita_id}/asignar-odontologo",
            json={"odontologoId": dentist.id},
            headers=auth_headers(receptionist),
        )
        second = api.put(
            f"/api/citas/{cita_id}/asignar-odontologo",
            json={"odontologoId": other_dentist.id},
            headers=auth_headers(other_receptionist),
        )
        assert first.status_code == 200
        assert second.status_code == 409

    def test_client_cancel_without_body(self, api, cita_id, client_user):
        response = api.put(f"/api/citas/{cita_id}/cancelar", headers=auth_headers(client_user))
        assert response.status_code == 200
        assert response.json()["datos"]["cita"]["motivoCancelacion"] == "Sin motivo especificado"

    def test_other_client_cannot_cancel(self, api, cita_id, other_client):
        response = api.put(f"/api/citas/{cita_id}/cancelar", headers=auth_headers(other_client))
        assert response.status_code == 403

    def test_reschedule_accepts_legacy_reason_field(self, api, cita_id, client_user):
        response = api.put(
            f"/api/citas/{cita_id}/reagendar",
            json={"fechaHora": "2025-06-11T08:00:00", "motivoReagendamiento": "Viaje"},
            headers=auth_headers(client_user),
        )
        assert response.status_code == 200
        cita = response.json()["datos"]["cita"]
        assert cita["motivoReagendamiento"] == "Viaje"
        assert cita["fechaAnterior"] == "2025-06-10T09:00:00"

    def test_not_found(self, api, client_user):
        response = api.put("/api/citas/9999/cancelar", headers=auth_headers(client_user))
        assert response.status_code == 404
        assert response.json()["mensaje"] == "Cita no encontrada"

    def test_no_show(self, api, cita_id, receptionist):
        response = api.put(f"/api/citas/{cita_id}/no-asistio", headers=auth_headers(receptionist))
        assert response.json()["datos"]["cita"]["estado"] == "no_asistio"


class TestRoleGating:
    @pytest.mark.parametrize("path", ["/api/citas/pendientes", "/api/citas/odontologos"])
    def test_staff_lists(self, api, path, client_user, dentist, admin):
        assert api.get(path, headers=auth_headers(client_user)).status_code == 403
        assert api.get(path, headers=auth_headers(dentist)).status_code == 403
        assert api.get(path, headers=auth_headers(admin)).status_code == 200

    def test_client_listing_is_for_clients(self, api, client_user, receptionist):
        assert api.get("/api/citas/mis-citas", headers=auth_headers(client_user)).status_code == 200
        assert api.get("/api/citas/mis-citas", headers=auth_headers(receptionist)).status_code == 403

    def test_dentist_listing_is_for_dentists(self, api, dentist, client_user):
        path = "/api/citas/odontologo/mis-citas"
        assert api.get(path, headers=auth_headers(dentist)).status_code == 200
        assert api.get(path, headers=auth_headers(client_user)).status_code == 403

    def test_page_must_be_positive(self, api, client_user):
        response = api.get(
            "/api/citas/mis-citas", params={"pagina": 0}, headers=auth_headers(client_user)
        )
        assert response.status_code == 400
        assert response.json()["errores"][0]["campo"] == "pagina"
