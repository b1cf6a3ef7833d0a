"""
Tests del validador de CUFE y de los enlaces QR.
"""
import pytest

from cafe_import.services.cafe import cufe_validator


VALID_BODY = "01200000045400-2-299934-0900002022050500000000389990117686690628"


class TestIsWellFormed:

    @pytest.mark.parametrize("prefix", ["FE", "NC", "ND"])
    def test_prefijos_reconocidos(self, prefix):
        assert cufe_validator.is_well_formed(prefix + VALID_BODY) is True

    def test_longitud_minima_exacta(self):
        cufe = "FE" + "1" * 38
        assert len(cufe) == 40
        assert cufe_validator.is_well_formed(cufe) is True

    def test_un_caracter_menos_que_el_minimo(self):
        assert cufe_validator.is_well_formed("FE" + "1" * 37) is False

    @pytest.mark.parametrize("cufe", [
        "XX" + VALID_BODY,
        "F" + VALID_BODY,
        "12" + VALID_BODY,
    ])
    def test_prefijo_no_reconocido(self, cufe):
        assert cufe_validator.is_well_formed(cufe) is False

    @pytest.mark.parametrize("cufe", [None, "", "   "])
    def test_vacio(self, cufe):
        assert cufe_validator.is_well_formed(cufe) is False

    def test_minusculas_y_espacios_se_normalizan(self):
        assert cufe_validator.is_well_formed("  fe" + VALID_BODY + "  ") is True


class TestNormalize:

    def test_recorta_y_pasa_a_mayusculas(self):
        assert cufe_validator.normalize("  fe0120abc ") == "FE0120ABC"

    def test_none(self):
        assert cufe_validator.normalize(None) == ""


class TestQrLinks:

    def test_extraer_es_inverso_de_construir(self):
        cufe = "FE" + VALID_BODY
        link = cufe_validator.build_qr_link(cufe)
        assert cufe_validator.looks_like_qr_link(link)
        assert cufe_validator.extract_identifier_from_qr_link(link) == cufe

    def test_extraer_normaliza_mayusculas(self):
        link = cufe_validator.build_qr_link("fe" + VALID_BODY)
        assert cufe_validator.extract_identifier_from_qr_link(link) == "FE" + VALID_BODY

    def test_parametro_entre_otros(self):
        link = f"https://dgi-fep.mef.gob.pa/Consultas/FacturasPorQR?iAmb=1&chFE=NC{VALID_BODY}&digestValue=abc"
        assert cufe_validator.extract_identifier_from_qr_link(link) == "NC" + VALID_BODY

    def test_marcador_sin_distinguir_mayusculas(self):
        assert cufe_validator.looks_like_qr_link("HTTPS://DGI-FEP.MEF.GOB.PA/CONSULTAS/FACTURASPORQR?CHFE=X")
        assert not cufe_validator.looks_like_qr_link("https://dgi-fep.mef.gob.pa/Consultas/FacturasPorCUFE/X")

    def test_enlace_sin_parametro(self):
        assert cufe_validator.extract_identifier_from_qr_link(
            "https://dgi-fep.mef.gob.pa/Consultas/FacturasPorQR?iAmb=1"
        ) is None


class TestExtractIdentifierFromUrl:

    def test_url_de_consulta_por_cufe(self):
        url = cufe_validator.build_registry_url("FE" + VALID_BODY)
        assert url == f"https://dgi-fep.mef.gob.pa/Consultas/FacturasPorCUFE/FE{VALID_BODY}"
        assert cufe_validator.extract_identifier_from_url(url) == "FE" + VALID_BODY

    def test_enlace_qr(self):
        link = cufe_validator.build_qr_link("ND" + VALID_BODY)
        assert cufe_validator.extract_identifier_from_url(link) == "ND" + VALID_BODY

    def test_cufe_escrito_a_mano(self):
        assert cufe_validator.extract_identifier_from_url(" fe" + VALID_BODY) == "FE" + VALID_BODY

    def test_texto_cualquiera(self):
        assert cufe_validator.extract_identifier_from_url("https://example.com/factura") is None


def test_format_for_display():
    cufe = "FE" + VALID_BODY
    assert cufe_validator.format_for_display(cufe) == cufe[:20] + "..."
    assert cufe_validator.format_for_display("FE123") == "FE123"
    assert cufe_validator.format_for_display(None) == ""
