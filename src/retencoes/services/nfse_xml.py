from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from lxml import etree

from retencoes.config import NFSE_NS
from retencoes.services.exceptions import ExtractionError

logger = logging.getLogger(__name__)

_NS = {"n": NFSE_NS}

# regTrib/opSimpNac
OP_SIMP_NAC_NAO_OPTANTE = "1"
OP_SIMP_NAC_MEI = "2"
OP_SIMP_NAC_ME_EPP = "3"


def _decimal(text: str) -> Decimal | None:
    if not text:
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        logger.warning("Valor decimal invalido no XML: %r", text)
        return None


def _rate_of(amount: Decimal | None, base: Decimal | None) -> str:
    """Effective rate (%) of a withheld *amount* over *base*, 2 decimals."""
    if not amount or not base:
        return "0"
    rate = (amount * 100 / base).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return str(rate)


def parse_nfse_xml(xml_bytes: bytes) -> dict:
    """Read an NFS-e Nacional (or bare DPS) XML into the extraction contract.

    Returns the same camelCase dict the Gemini extraction produces, so both
    paths feed ``InvoiceFacts.from_extracted``. Raises ExtractionError when the
    payload is not XML or carries no DPS.
    """
    try:
        root = etree.fromstring(xml_bytes)
    except etree.XMLSyntaxError as exc:
        raise ExtractionError(f"XML invalido: {exc}") from exc

    inf_dps = root if etree.QName(root).localname == "infDPS" else root.find(".//n:infDPS", _NS)
    if inf_dps is None:
        raise ExtractionError("XML nao contem uma NFS-e/DPS do padrao nacional")

    def txt(node: etree._Element, xpath: str) -> str:
        return node.findtext(xpath, default="", namespaces=_NS).strip()

    # emit is only present on the issued NFS-e; a bare DPS identifies the supplier in prest
    nome = txt(root, ".//n:emit/n:xNome") or txt(inf_dps, "n:prest/n:xNome")
    cnpj = txt(root, ".//n:emit/n:CNPJ") or txt(inf_dps, "n:prest/n:CNPJ")
    numero = txt(root, ".//n:infNFSe/n:nNFSe") or txt(inf_dps, "n:nDPS")

    valor_servico = _decimal(txt(inf_dps, "n:valores/n:vServPrest/n:vServ"))
    op_simp_nac = txt(inf_dps, "n:prest/n:regTrib/n:opSimpNac")

    aliquota_iss = txt(inf_dps, "n:valores/n:trib/n:tribMun/n:pAliq") or txt(
        root, ".//n:infNFSe/n:valores/n:pAliqAplic"
    )
    trib_fed = "n:valores/n:trib/n:tribFed/"
    ret_irrf = _decimal(txt(inf_dps, trib_fed + "n:vRetIRRF"))
    ret_cp = _decimal(txt(inf_dps, trib_fed + "n:vRetCP"))

    local = txt(root, ".//n:infNFSe/n:xLocPrestacao")
    incidencia = txt(root, ".//n:infNFSe/n:xLocIncid") or local

    return {
        "razaoSocial": nome,
        "cnpj": cnpj,
        "numeroNF": numero,
        "valorBruto": str(valor_servico) if valor_servico is not None else None,
        "optanteSimples": "SIM" if op_simp_nac in (OP_SIMP_NAC_MEI, OP_SIMP_NAC_ME_EPP) else "NÃO",
        "isMei": "SIM" if op_simp_nac == OP_SIMP_NAC_MEI else "NÃO",
        "localServico": local,
        "municipioIncidencia": incidencia,
        "aliquotaIR": _rate_of(ret_irrf, valor_servico),
        "aliquotaISS": aliquota_iss or "0",
        "documentoTipo": "SERVICO",
        "codigoReinf": "",
        "valorINSS": str(ret_cp) if ret_cp is not None else 0,
        "baseCalculoINSS": 0,
        "aliquotaINSS": 0,
    }
