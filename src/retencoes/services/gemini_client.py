"""Invoice extraction through the Gemini ``generateContent`` REST endpoint."""

from __future__ import annotations

import base64
import json
import logging

from requests import post

from retencoes.config import GEMINI_ENDPOINT, get_api_key, get_gemini_model, get_gemini_timeout
from retencoes.services.exceptions import AuthenticationError, ExtractionError
from retencoes.services.http_retry import GEMINI_EXTRACT, raise_for_gemini_status, retry_call

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """\
Você é um assistente especialista em automação de contabilidade, analisando documentos \
fiscais brasileiros. Sua tarefa é extrair informações específicas do documento fornecido.

Analise o documento e extraia os seguintes campos:
1.  "razaoSocial": O nome completo da empresa (Fornecedor).
2.  "cnpj": O CNPJ do fornecedor. Formate-o como XX.XXX.XXX/XXXX-XX.
3.  "numeroNF": O número da nota fiscal.
4.  "optanteSimples": Verifique se a empresa é optante pelo Simples Nacional. Retorne "SIM" ou "NÃO".
5.  "isMei": Verifique se a empresa é MEI (Microempreendedor Individual). Retorne "SIM" ou "NÃO".
6.  "localServico": O local da prestação do serviço.
7.  "municipioIncidencia": O município onde o imposto (ISS) incide.
8.  "valorBruto": O valor bruto total do serviço. Extraia como um número, usando ponto \
como separador decimal (ex: 1234.56).
9.  "aliquotaIR": A alíquota de I.R. em porcentagem. Retorne apenas o número \
(ex: para 1,5%, retorne 1.5).
10. "aliquotaISS": A alíquota de ISS em porcentagem. Retorne apenas o número \
(ex: para 3,29%, retorne 3.29).
11. "documentoTipo": Classifique o documento. Se contiver termos como "DANFE", "venda", \
"produto" ou similar, retorne "PRODUTO". Se for uma nota fiscal de serviço, retorne \
"SERVICO". Se não for claro, retorne "INDEFINIDO".
12. "codigoReinf": O código do serviço (natureza do rendimento). Extraia apenas o número \
de 5 dígitos (ex: 17032). Se não encontrar, retorne "".
13. "valorINSS": O valor da retenção de INSS. Extraia como um número.
14. "baseCalculoINSS": A base de cálculo para o INSS. Extraia como um número.
15. "aliquotaINSS": A alíquota de INSS em porcentagem. Retorne apenas o número.

Se algum campo não for encontrado, retorne um valor padrão apropriado \
(string vazia "" ou 0 para números).

O resultado deve ser um único objeto JSON.
"""


def build_request(payload: bytes, mime_type: str) -> dict:
    """Request body: the prompt plus the document as inline base64 data."""
    return {
        "contents": [
            {
                "parts": [
                    {"text": EXTRACTION_PROMPT},
                    {
                        "inline_data": {
                            "mime_type": mime_type,
                            "data": base64.b64encode(payload).decode("ascii"),
                        }
                    },
                ]
            }
        ],
        "generationConfig": {"responseMimeType": "application/json"},
    }


def parse_response(data: dict) -> dict:
    """Pull the JSON object out of a generateContent response.

    Raises ExtractionError when the model returned nothing or non-JSON text.
    """
    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts).strip()
    except (KeyError, IndexError, TypeError):
        text = ""
    if not text:
        raise ExtractionError(
            "A IA não retornou uma resposta válida. O conteúdo pode estar vazio.", data
        )
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Resposta da IA nao e JSON: %.200s", text)
        raise ExtractionError(
            "A IA retornou uma resposta em um formato inesperado (não-JSON).", data
        ) from None
    # some models wrap the object in a one-element list
    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]
    if not isinstance(parsed, dict):
        raise ExtractionError("A IA retornou um JSON que não é um objeto.", data)
    return parsed


def extract_invoice_data(payload: bytes, mime_type: str) -> dict:
    """Send a PDF or image to Gemini and return the extracted camelCase fields.

    Blocking; raises AuthenticationError when the key is missing or rejected
    and ExtractionError for any other failure once retries are exhausted.
    """
    try:
        api_key = get_api_key()
    except KeyError:
        raise AuthenticationError(
            "Chave da API do Gemini não configurada (GEMINI_API_KEY)."
        ) from None

    url = GEMINI_ENDPOINT.format(model=get_gemini_model())
    body = build_request(payload, mime_type)
    timeout = get_gemini_timeout()

    def _do_post():
        resp = post(
            url,
            json=body,
            headers={"x-goog-api-key": api_key},
            timeout=timeout,
        )
        raise_for_gemini_status(resp)
        return resp.json()

    try:
        data = retry_call(_do_post, GEMINI_EXTRACT)
    except ExtractionError:
        raise
    except (OSError, ValueError) as exc:
        # requests' connection, timeout and HTTP errors derive from OSError
        raise ExtractionError(
            "Falha de comunicação com a IA do Google Gemini. "
            f"Verifique sua chave de API e conexão com a internet. ({exc})"
        ) from exc
    return parse_response(data)
