from __future__ import annotations

from decimal import Decimal

import pytest

from retencoes.models.facts import DocumentoTipo, InvoiceFacts
from retencoes.models.record import CalculatedRecord, new_record
from retencoes.models.settings import DEFAULT_SETTINGS
from retencoes.services.extraction import SourceDocument
from retencoes.services.rules import compute_withholdings

# --- Facts fixtures ---


def _make_facts(**overrides) -> InvoiceFacts:
    """Service invoice in the home municipality; override any field."""
    base = {
        "razao_social": "CONSTRUTORA ALFA LTDA",
        "cnpj": "12.345.678/0001-99",
        "numero_nf": "1234",
        "valor_bruto": Decimal("1000.00"),
        "documento_tipo": DocumentoTipo.SERVICO,
        "municipio_incidencia": "Senador Canedo - GO",
        "local_servico": "Senador Canedo - GO",
        "aliquota_ir": Decimal("1.20"),
        "aliquota_iss": Decimal("5.00"),
    }
    base.update(overrides)
    return InvoiceFacts(**base)


def _make_record(**overrides) -> CalculatedRecord:
    facts = _make_facts(**overrides)
    return new_record(facts, compute_withholdings(facts, DEFAULT_SETTINGS))


@pytest.fixture
def make_facts():
    return _make_facts


@pytest.fixture
def make_record():
    return _make_record


@pytest.fixture
def facts() -> InvoiceFacts:
    return _make_facts()


@pytest.fixture
def record() -> CalculatedRecord:
    return _make_record()


@pytest.fixture
def extracted_dict() -> dict:
    """A Gemini-style extraction result (camelCase, "SIM"/"NÃO" flags)."""
    return {
        "razaoSocial": "CONSTRUTORA ALFA LTDA",
        "cnpj": "12.345.678/0001-99",
        "numeroNF": "1234",
        "optanteSimples": "NÃO",
        "isMei": "NÃO",
        "localServico": "Senador Canedo - GO",
        "municipioIncidencia": "Senador Canedo - GO",
        "valorBruto": 1000.00,
        "aliquotaIR": 1.2,
        "aliquotaISS": 5,
        "documentoTipo": "SERVICO",
        "codigoReinf": "17003",
        "valorINSS": 0,
        "baseCalculoINSS": 0,
        "aliquotaINSS": 0,
    }


# --- Documents ---


@pytest.fixture
def pdf_document() -> SourceDocument:
    return SourceDocument(name="nf-1234.pdf", mime_type="application/pdf", payload=b"%PDF-1.4")


# --- Data/config dirs ---


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    d = tmp_path / "data"
    monkeypatch.setenv("RETENCOES_DATA_DIR", str(d))
    return d


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    d = tmp_path / "config"
    d.mkdir()
    monkeypatch.setenv("RETENCOES_CONFIG_DIR", str(d))
    return d


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setattr("retencoes.config._get_keyring_api_key", lambda: None)


NFSE_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<NFSe xmlns="http://www.sped.fazenda.gov.br/nfse" versao="1.00">
  <infNFSe Id="NFS52194032212345678000199000000000004525010000000001">
    <xLocEmi>Goiania</xLocEmi>
    <xLocPrestacao>Senador Canedo</xLocPrestacao>
    <nNFSe>452</nNFSe>
    <xLocIncid>Senador Canedo</xLocIncid>
    <emit>
      <CNPJ>12345678000199</CNPJ>
      <xNome>CONSTRUTORA ALFA LTDA</xNome>
    </emit>
    <valores>
      <vBC>2000.00</vBC>
      <pAliqAplic>3.00</pAliqAplic>
      <vLiq>1856.00</vLiq>
    </valores>
    <DPS versao="1.00">
      <infDPS Id="DPS521940321234567800019900900000000000000452">
        <nDPS>452</nDPS>
        <prest>
          <CNPJ>12345678000199</CNPJ>
          <regTrib>
            <opSimpNac>1</opSimpNac>
            <regEspTrib>0</regEspTrib>
          </regTrib>
        </prest>
        <valores>
          <vServPrest>
            <vServ>2000.00</vServ>
          </vServPrest>
          <trib>
            <tribMun>
              <tribISSQN>1</tribISSQN>
              <pAliq>3.00</pAliq>
              <tpRetISSQN>2</tpRetISSQN>
            </tribMun>
            <tribFed>
              <vRetCP>110.00</vRetCP>
              <vRetIRRF>24.00</vRetIRRF>
            </tribFed>
          </trib>
        </valores>
      </infDPS>
    </DPS>
  </infNFSe>
</NFSe>
"""


@pytest.fixture
def nfse_xml() -> bytes:
    return NFSE_XML
