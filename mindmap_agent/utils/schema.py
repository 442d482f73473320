"""Mind map schema validation.

Two shapes are accepted because stored maps may predate the current prompt:

- graph: ``{titulo_central, nodos: [{id, titulo, descripcion, source_ids?}],
  relaciones: [{desde, hacia, tipo}]}``
- flat: ``{titulo_central, conceptos_clave: [5..7 strings], resumen_ejecutivo}``

``validate_mind_map`` never raises. It returns the input object unchanged when
it satisfies one shape completely and None otherwise.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, StrictStr, ValidationError, field_validator

from api.utils.debug import print__decoder_debug

# ==============================================================================
# CONSTANTS
# ==============================================================================
MIN_KEY_CONCEPTS = 5
MAX_KEY_CONCEPTS = 7

SHAPE_GRAPH = "graph"
SHAPE_FLAT = "flat"


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty or only whitespace")
    return value


# ==============================================================================
# GRAPH SHAPE
# ==============================================================================
class GraphNode(BaseModel):
    id: StrictStr
    titulo: StrictStr
    descripcion: StrictStr
    source_ids: List[Any] = Field(default_factory=list)


class GraphRelation(BaseModel):
    desde: StrictStr
    hacia: StrictStr
    tipo: StrictStr


class GraphMindMap(BaseModel):
    """Node/relation mind map produced by earlier prompt versions."""

    titulo_central: StrictStr
    nodos: List[GraphNode]
    relaciones: List[GraphRelation]

    @field_validator("titulo_central")
    @classmethod
    def validate_titulo_central(cls, v):
        return _not_blank(v)


# ==============================================================================
# FLAT SHAPE
# ==============================================================================
class FlatMindMap(BaseModel):
    """Central title, 5 to 7 key concepts and a short executive summary."""

    titulo_central: StrictStr = Field(
        description="El tema principal y conciso de toda la conversación."
    )
    conceptos_clave: List[StrictStr] = Field(
        min_length=MIN_KEY_CONCEPTS,
        max_length=MAX_KEY_CONCEPTS,
        description="Lista de 5 a 7 conceptos clave extraídos del texto.",
    )
    resumen_ejecutivo: StrictStr = Field(
        description="Un resumen de la conversación de no más de 50 palabras."
    )

    @field_validator("titulo_central", "resumen_ejecutivo")
    @classmethod
    def validate_text(cls, v):
        return _not_blank(v)

    @field_validator("conceptos_clave")
    @classmethod
    def validate_conceptos(cls, v):
        for concept in v:
            _not_blank(concept)
        return v


# ==============================================================================
# PUBLIC API
# ==============================================================================
_SHAPES = ((SHAPE_GRAPH, GraphMindMap), (SHAPE_FLAT, FlatMindMap))


def detect_shape(value: Any) -> Optional[str]:
    """Name of the first shape ``value`` fully satisfies, or None."""
    if not isinstance(value, dict):
        return None
    for name, model in _SHAPES:
        try:
            model.model_validate(value)
        except ValidationError:
            continue
        return name
    return None


def validate_mind_map(value: Any) -> Optional[dict]:
    """Return ``value`` if it is a complete graph or flat mind map, else None."""
    shape = detect_shape(value)
    if shape is None:
        print__decoder_debug("validate_mind_map: value matches neither schema")
        return None
    return value
