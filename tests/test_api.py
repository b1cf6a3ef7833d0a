"""
Tests de endpoints: consulta directa, flujo de importación y facturas importadas.
"""
import pytest
from fastapi import status

from cafe_import.crud import store as crud_store
from cafe_import.utils.cors import parse_origins
from tests.conftest import FakeResponse


FLOW = "/api/v1/cafe/flow"


def _submit(client, cufe, session_id="s1", **extra):
    return client.post(f"{FLOW}/submit", json={"cufe": cufe, **extra}, headers={"X-Session-Id": session_id})


def _confirm(client, session_id="s1", **payload):
    return client.post(f"{FLOW}/confirm", json=payload, headers={"X-Session-Id": session_id})


class TestFetchEndpoint:

    def test_consulta_exitosa(self, client, sample_cufe):
        response = client.post("/api/v1/cafe/fetch", json={"cufe": sample_cufe})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["success"] is True
        assert "error" not in body
        invoice = body["invoice"]
        assert invoice["cufe"] == sample_cufe
        assert invoice["invoiceNumber"] == "0000000389"
        assert invoice["issuer"]["taxId"] == "45400-2-299934"
        assert invoice["totals"]["grandTotal"] == 10.70
        assert invoice["items"][1]["lineNumber"] == 2
        assert invoice["items"][1]["quantity"] == 2.0

    def test_qr_url(self, client, sample_cufe):
        link = f"https://dgi-fep.mef.gob.pa/Consultas/FacturasPorQR?chFE={sample_cufe}&iAmb=1"
        response = client.post("/api/v1/cafe/fetch", json={"qrUrl": link})
        assert response.status_code == status.HTTP_200_OK

    def test_cufe_invalido(self, client, registry_http):
        response = client.post("/api/v1/cafe/fetch", json={"cufe": "123"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["success"] is False
        assert body["errorCode"] == "INVALID_CUFE"
        assert "invoice" not in body
        assert registry_http.calls == []

    def test_no_encontrada(self, client, registry_http, sample_cufe):
        registry_http.response = FakeResponse(404, "")
        response = client.post("/api/v1/cafe/fetch", json={"cufe": sample_cufe})
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errorCode"] == "NOT_FOUND"

    def test_error_inesperado(self, client, registry_http, sample_cufe):
        registry_http.error = RuntimeError("boom")
        response = client.post("/api/v1/cafe/fetch", json={"cufe": sample_cufe})
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["errorCode"] == "UNKNOWN"


class TestFlowEndpoints:

    def test_estado_inicial(self, client):
        body = client.get(FLOW).json()
        assert body["state"]["status"] == "pending"
        assert body["isLoading"] is False
        assert body["canImport"] is False
        assert body["notifications"] == []

    def test_escenario_completo(self, client, sample_cufe):
        body = _submit(client, sample_cufe).json()
        assert body["state"]["status"] == "preview"
        assert body["canImport"] is True
        assert len(body["state"]["invoice"]["items"]) == 3
        assert body["notifications"][0]["message"] == "Factura encontrada"

        body = _confirm(client, selectedLineNumbers=[1, 3], storeName="Mi tienda").json()
        assert body["state"]["status"] == "completed"
        assert body["state"]["importedItemCount"] == 2
        assert body["state"]["resultingSessionId"]

        imports = client.get("/api/v1/cafe/imports").json()
        assert len(imports) == 1
        assert imports[0]["cufe"] == sample_cufe
        assert imports[0]["id"] == body["state"]["importedInvoiceId"]
        assert imports[0]["shoppingSessionId"] == body["state"]["resultingSessionId"]

    def test_duplicado_en_segundo_envio(self, client, sample_cufe, registry_http):
        _submit(client, sample_cufe)
        _confirm(client)
        client.post(f"{FLOW}/reset", headers={"X-Session-Id": "s1"})

        body = _submit(client, sample_cufe).json()
        assert body["state"]["status"] == "pending"
        assert body["state"]["errorCode"] == "ALREADY_IMPORTED"
        assert body["state"]["duplicateInfo"]["isImported"] is True
        assert len(registry_http.calls) == 1

        body = _submit(client, sample_cufe, force=True).json()
        assert body["state"]["status"] == "preview"

    def test_confirmar_sin_vista_previa(self, client):
        response = _confirm(client)
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_cufe_invalido(self, client):
        body = _submit(client, "XYZ").json()
        assert body["state"]["status"] == "error"
        assert body["state"]["errorCode"] == "INVALID_CUFE"
        assert body["notifications"][0]["level"] == "error"

    def test_reset_y_close(self, client, sample_cufe):
        _submit(client, sample_cufe)

        body = client.post(f"{FLOW}/reset", headers={"X-Session-Id": "s1"}).json()
        assert body["state"]["status"] == "pending"
        assert body["state"].get("invoice") is None

        _submit(client, sample_cufe)
        body = client.post(f"{FLOW}/close", headers={"X-Session-Id": "s1"}).json()
        assert body["state"]["status"] == "pending"

    def test_envio_con_identificador(self, client, sample_cufe, registry_http):
        response = client.post(f"{FLOW}/submit", json={"identifier": sample_cufe}, headers={"X-Session-Id": "s1"})

        assert response.json()["state"]["status"] == "preview"
        assert len(registry_http.calls) == 1

    def test_envio_con_url_del_qr(self, client, sample_cufe):
        link = f"https://dgi-fep.mef.gob.pa/Consultas/FacturasPorQR?chFE={sample_cufe}&iAmb=1"
        response = client.post(f"{FLOW}/submit", json={"qrUrl": link}, headers={"X-Session-Id": "s1"})

        assert response.json()["state"]["invoice"]["cufe"] == sample_cufe

    def test_close_libera_el_flujo_de_la_sesion(self, client, app, sample_cufe):
        flows = app.state.flow_registry
        for n in range(50):
            _submit(client, sample_cufe, session_id=f"vista-{n}")
            client.post(f"{FLOW}/close", headers={"X-Session-Id": f"vista-{n}"})

        assert len(flows) == 0

    def test_close_de_sesion_desconocida(self, client, app):
        body = client.post(f"{FLOW}/close", headers={"X-Session-Id": "nunca-vista"}).json()

        assert body["state"]["status"] == "pending"
        assert len(app.state.flow_registry) == 0

    def test_sesiones_independientes(self, client, sample_cufe):
        _submit(client, sample_cufe, session_id="a")

        assert client.get(FLOW, headers={"X-Session-Id": "a"}).json()["state"]["status"] == "preview"
        assert client.get(FLOW, headers={"X-Session-Id": "b"}).json()["state"]["status"] == "pending"

    def test_tienda_asociada(self, client, db, sample_cufe):
        store = crud_store.create_store(db, "El Ahorro", ruc="45400-2-299934", is_verified=True)

        body = _submit(client, sample_cufe).json()
        assert body["state"]["matchedStore"]["storeId"] == store.id
        assert "Tienda asociada: El Ahorro" in [n["message"] for n in body["notifications"]]


class TestImportsEndpoints:

    def _import(self, client, cufe):
        _submit(client, cufe)
        return _confirm(client).json()["state"]["importedInvoiceId"]

    def test_obtener_y_eliminar(self, client, sample_cufe):
        imported_id = self._import(client, sample_cufe)

        response = client.get(f"/api/v1/cafe/imports/{imported_id}")
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["grandTotal"] == 10.70
        assert body["totalTax"] == 0.70
        assert body["itemCount"] == 3
        assert body["invoiceData"]["cufe"] == sample_cufe

        assert client.delete(f"/api/v1/cafe/imports/{imported_id}").status_code == status.HTTP_204_NO_CONTENT
        assert client.get(f"/api/v1/cafe/imports/{imported_id}").status_code == status.HTTP_404_NOT_FOUND
        assert client.delete(f"/api/v1/cafe/imports/{imported_id}").status_code == status.HTTP_404_NOT_FOUND

    def test_estadisticas(self, client, sample_cufe):
        assert client.get("/api/v1/cafe/imports/statistics").json()["totalImports"] == 0

        self._import(client, sample_cufe)

        stats = client.get("/api/v1/cafe/imports/statistics").json()
        assert stats["totalImports"] == 1
        assert stats["totalAmount"] == 10.70
        assert stats["totalItems"] == 3
        assert stats["uniqueStores"] == 1

    def test_paginacion_invalida(self, client):
        assert client.get("/api/v1/cafe/imports?limit=0").status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_health(client):
    body = client.get("/api/v1/health").json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"


def test_root(client):
    assert client.get("/api/v1/").status_code == status.HTTP_200_OK


@pytest.mark.parametrize("value,environment,expected", [
    ("https://a.pa, https://b.pa", "production", ["https://a.pa", "https://b.pa"]),
    (["https://a.pa"], "production", ["https://a.pa"]),
    ("", "production", ["*"]),
    (None, "production", ["*"]),
    ("https://a.pa", "development", ["*"]),
])
def test_parse_origins(value, environment, expected):
    assert parse_origins(value, environment) == expected
