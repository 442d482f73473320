"""Prompt construction for mind map generation.

Three prompt variants share one base text:

- baseline: instructions, the flat JSON schema and the tagged conversation
- strict: the baseline wrapped in a demand for a fenced ```json block
- forced: a complete worked example of the expected object prepended to the
  baseline, used when the service answered with an opaque identifier
"""

import json
import re
from typing import Any, Dict, Iterable, List

from langchain_core.prompts import PromptTemplate

from mindmap_agent.utils.state import Fragment

# ==============================================================================
# SCHEMA AND EXAMPLE
# ==============================================================================
FLAT_MIND_MAP_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "description": "Lista plana de componentes para un mapa conceptual.",
    "properties": {
        "titulo_central": {
            "type": "string",
            "description": "El tema principal y conciso de toda la conversación.",
        },
        "conceptos_clave": {
            "type": "array",
            "description": "Lista de 5 a 7 conceptos clave extraídos del texto.",
            "items": {
                "type": "string",
                "description": "Un concepto clave, idea o estadística extraída.",
            },
        },
        "resumen_ejecutivo": {
            "type": "string",
            "description": "Un resumen de la conversación de no más de 50 palabras.",
        },
    },
    "required": ["titulo_central", "conceptos_clave", "resumen_ejecutivo"],
}

FORCED_EXAMPLE: Dict[str, Any] = {
    "titulo_central": "Tema de ejemplo",
    "conceptos_clave": [
        "Aspecto clave 1",
        "Aspecto clave 2",
        "Aspecto clave 3",
        "Aspecto clave 4",
        "Aspecto clave 5",
    ],
    "resumen_ejecutivo": "Resumen sintético del tema en menos de cincuenta palabras.",
}

# ==============================================================================
# TEMPLATES
# ==============================================================================
BASE_TEMPLATE = PromptTemplate.from_template(
    """Analiza la siguiente conversación. Genera estrictamente un objeto JSON que se ajuste al esquema proporcionado. Identifica los conceptos más importantes y un resumen conciso.
Instrucciones obligatorias:
- Devuelve SOLO el objeto JSON sin ningún texto adicional ni bloques de código.
- No incluyas saltos de línea \\n ni comillas dobles " dentro de los valores de texto.
- Limita el resumen a un máximo de 50 palabras.
- Entrega entre 5 y 7 conceptos clave relevantes.

Esquema esperado:
{schema}

Texto de la conversación:
\"\"\"
{conversation}
\"\"\""""
)

STRICT_TEMPLATE = PromptTemplate.from_template(
    "Por favor DEVUELVE SOLO EL OBJETO JSON entre triple backticks con etiqueta json. "
    "\n```json\n{base_prompt}\n```\nNada más."
)

FORCED_TEMPLATE = PromptTemplate.from_template(
    "URGENTE: Devuelve SOLO el objeto JSON EXACTO que siga este ejemplo: {example}"
    "\nAhora, usando la conversación anterior: {base_prompt}"
)

_WHITESPACE_RUN = re.compile(r"\s+")


# ==============================================================================
# BUILDERS
# ==============================================================================
def format_conversation(fragments: Iterable[Fragment]) -> str:
    """Tag each fragment with its id so the model can cite sources."""
    lines: List[str] = []
    for fragment in fragments:
        text = _WHITESPACE_RUN.sub(" ", fragment.get("original_text") or "").strip()
        lines.append(f"- [ID:{fragment.get('source_id')}] {text}")
    return "\n\n".join(lines)


def build_base_prompt(conversation_text: str) -> str:
    return BASE_TEMPLATE.format(
        schema=json.dumps(FLAT_MIND_MAP_SCHEMA, indent=2, ensure_ascii=False),
        conversation=conversation_text,
    )


def build_strict_prompt(base_prompt: str) -> str:
    return STRICT_TEMPLATE.format(base_prompt=base_prompt)


def build_forced_prompt(base_prompt: str) -> str:
    return FORCED_TEMPLATE.format(
        example=json.dumps(FORCED_EXAMPLE, indent=2, ensure_ascii=False),
        base_prompt=base_prompt,
    )


def build_request_body(prompt: str, generation_settings: Dict[str, Any]) -> Dict[str, Any]:
    """Wire body for ``generateContent``."""
    return {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": dict(generation_settings),
        "safetySettings": [],
    }
