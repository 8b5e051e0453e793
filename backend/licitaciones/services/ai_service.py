import json
import logging
import os
import re
from typing import Any, Iterable, Optional

from licitaciones.errors import AIConfigurationError, AIServiceError
from licitaciones.schemas.analysis import AnalysisResult, TenderMetadata
from licitaciones.schemas.tender import TenderRecord
from licitaciones.services.file_service import PendingDocument
from licitaciones.services.pdf_service import extract_text_from_pdf, is_pdf

# Per-document truncation for the prompt
_MAX_DOCUMENT_CHARS = 30000
# Ollama can be slow on CPU; a full analysis reads up to three long documents.
_OLLAMA_TIMEOUT_SEC = 300
_OLLAMA_EXTRACTION_TIMEOUT_SEC = 120

logger = logging.getLogger(__name__)

_STRING = {"type": "string"}

METADATA_SCHEMA = {
    "type": "object",
    "properties": {
        "name": _STRING,
        "budget": _STRING,
        "scoringSystem": _STRING,
        "expedientNumber": _STRING,
        "deadline": {"type": "string", "description": "YYYY-MM-DD"},
        "tenderPageUrl": _STRING,
        "adminUrl": _STRING,
        "techUrl": _STRING,
        "allLinks": {"type": "array", "items": _STRING},
    },
    "required": ["name"],
}

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "decision": {"type": "string", "enum": ["KEEP", "DISCARD", "REVIEW"]},
        "summaryReasoning": _STRING,
        "economic": {"type": "object", "properties": {"budget": _STRING, "model": _STRING, "basis": _STRING}},
        "scope": {
            "type": "object",
            "properties": {"objective": _STRING, "deliverables": {"type": "array", "items": _STRING}},
        },
        "resources": {"type": "object", "properties": {"duration": _STRING, "team": _STRING, "dedication": _STRING}},
        "solvency": {
            "type": "object",
            "properties": {"certifications": _STRING, "specificSolvency": _STRING, "penalties": _STRING},
        },
        "strategy": {"type": "object", "properties": {"valuationCriteria": _STRING, "angle": _STRING}},
        "scoring": {
            "type": "object",
            "properties": {
                "priceWeight": {"type": "number"},
                "formulaWeight": {"type": "number"},
                "valueWeight": {"type": "number"},
                "details": _STRING,
                "subCriteria": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "label": _STRING,
                            "weight": {"type": "number"},
                            "category": {"type": "string", "enum": ["PRICE", "FORMULA", "VALUE"]},
                        },
                    },
                },
            },
        },
        "registrationChecklist": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"task": _STRING, "description": _STRING, "completed": {"type": "boolean"}},
            },
        },
    },
    "required": [
        "decision", "summaryReasoning", "economic", "scope", "resources",
        "solvency", "strategy", "scoring", "registrationChecklist",
    ],
}

METADATA_PROMPT = (
    "Analiza este documento y extrae: name, budget, scoringSystem, expedientNumber, "
    "deadline (YYYY-MM-DD), tenderPageUrl, adminUrl, techUrl y allLinks (todos los enlaces del documento). "
    "Idioma: Español. Responde JSON."
)


def build_analysis_system_prompt(rules: str) -> str:
    return (
        "Actúa como un Bid Manager Senior. Analiza los pliegos adjuntos basándote en estas "
        f"REGLAS DE NEGOCIO: {rules}.\n"
        "Tu objetivo es decidir Go/No-Go. Redacta todo en IDIOMA ESPAÑOL.\n"
        "Extrae detalles económicos, alcance, recursos necesarios, requisitos de solvencia "
        "y el modelo de puntuación detallado.\n"
        "Responde estrictamente en JSON."
    )


def ai_provider() -> str:
    """Which AI backend is configured for analysis."""
    return "ollama" if os.getenv("OLLAMA_BASE_URL", "").strip() else "unconfigured"


def ensure_configured() -> str:
    base_url = os.getenv("OLLAMA_BASE_URL", "").strip()
    if not base_url:
        raise AIConfigurationError("Servicio de IA no configurado: falta OLLAMA_BASE_URL.")
    return base_url


def _model_name() -> str:
    return os.getenv("OLLAMA_MODEL", "llama3").strip() or "llama3"


def _fix_trailing_commas(s: str) -> str:
    """Remove trailing commas before ] or } so JSON parses."""
    s = re.sub(r",\s*}", "}", s)
    s = re.sub(r",\s*]", "]", s)
    return s


def _parse_json_from_response(text: str) -> dict[str, Any]:
    """Extract a JSON object from model output; tolerate code fences and trailing commas."""
    text = (text or "").strip()
    if "```json" in text:
        text = text.split("```json", 1)[-1].split("```", 1)[0].strip()
    elif "```" in text:
        text = text.split("```", 1)[-1].split("```", 1)[0].strip()
    start = text.find("{")
    if start >= 0:
        depth = 0
        for i in range(start, len(text)):
            if text[i] == "{":
                depth += 1
            elif text[i] == "}":
                depth -= 1
                if depth == 0:
                    text = text[start : i + 1]
                    break
    try:
        out = json.loads(text)
    except json.JSONDecodeError:
        out = json.loads(_fix_trailing_commas(text))
    if not isinstance(out, dict):
        raise json.JSONDecodeError("Model output is not a JSON object", text, 0)
    return out


def _chat(system: Optional[str], user_content: str, schema: dict, timeout: int) -> str:
    from ollama import Client

    base_url = ensure_configured()
    client = Client(host=base_url, timeout=timeout)
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": user_content})
    try:
        response = client.chat(model=_model_name(), messages=messages, format=schema)
    except Exception as e:
        raise AIServiceError(f"La llamada al servicio de IA falló: {e}") from e
    return _reply_text(response)


def _reply_text(response: Any) -> str:
    """Assistant text from a chat response, whether the client returned a ChatResponse or a plain dict."""
    if isinstance(response, dict):
        message = response.get("message") or {}
    else:
        message = getattr(response, "message", None)
    if isinstance(message, dict):
        return message.get("content") or ""
    return getattr(message, "content", None) or ""


def document_to_part(document: PendingDocument) -> Optional[str]:
    """Prompt text for one document: PDF text, or the raw content of text/json/xml files. None if unsupported."""
    content_type = (document.content_type or "").lower()
    name = document.filename or "documento"
    if is_pdf(name, content_type, document.content):
        text = extract_text_from_pdf(document.content)
    elif "text" in content_type or "json" in content_type or name.lower().endswith((".xml", ".txt", ".json")):
        text = document.content.decode("utf-8", errors="replace")
    else:
        logger.info("Skipping unsupported document %s (%s)", name, content_type or "unknown type")
        return None
    if not text.strip():
        return None
    return f"Archivo {name}:\n{text[:_MAX_DOCUMENT_CHARS]}"


def extract_metadata_from_tender_file(document: PendingDocument) -> TenderMetadata:
    """
    Pull tender fields and document links out of a summary file.
    Missing configuration and transport errors propagate; a malformed answer yields empty metadata.
    """
    ensure_configured()
    part = document_to_part(document)
    if part is None:
        logger.info("Metadata extraction: %s has no readable content", document.filename)
        return TenderMetadata()
    logger.info("Metadata extraction: calling Ollama (timeout=%ss, text_len=%s)", _OLLAMA_EXTRACTION_TIMEOUT_SEC, len(part))
    text = _chat(None, f"{part}\n\n{METADATA_PROMPT}", METADATA_SCHEMA, _OLLAMA_EXTRACTION_TIMEOUT_SEC)
    try:
        raw = _parse_json_from_response(text)
    except json.JSONDecodeError:
        logger.warning("Metadata extraction returned no JSON object, using empty metadata")
        return TenderMetadata()
    metadata = TenderMetadata.from_llm(raw)
    logger.info("Metadata extraction succeeded, name=%s", metadata.name)
    return metadata


def analyze_tender(tender: TenderRecord, documents: Iterable[PendingDocument], rules: str) -> AnalysisResult:
    """Go/No-Go analysis of a tender and its documents against the business rules."""
    ensure_configured()
    parts = [
        f"Expediente: {tender.name}\nNº: {tender.expedient_number or ''}\nPresupuesto: {tender.budget or ''}"
    ]
    for document in documents:
        part = document_to_part(document)
        if part:
            parts.append(part)
    logger.info("Analysis: tender=%s, %s prompt parts", tender.id, len(parts))
    text = _chat(build_analysis_system_prompt(rules), "\n\n".join(parts), ANALYSIS_SCHEMA, _OLLAMA_TIMEOUT_SEC)
    if not text.strip():
        logger.warning("Analysis: empty reply for tender=%s, using defaults", tender.id)
        raw = {}
    else:
        try:
            raw = _parse_json_from_response(text)
        except json.JSONDecodeError as e:
            raise AIServiceError("La respuesta del análisis no es JSON válido.") from e
    result = AnalysisResult.from_llm(raw)
    logger.info("Analysis succeeded, tender=%s decision=%s", tender.id, result.decision)
    return result
