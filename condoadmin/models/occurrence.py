"""
condoadmin/models/occurrence.py

Occurrences are resident-management events (notifications, warnings, fines)
registered by the síndico. They are counted here, never written.
"""

from enum import Enum


class OccurrenceType(str, Enum):
    NOTIFICACAO = "notificacao"
    ADVERTENCIA = "advertencia"
    MULTA = "multa"


class OccurrenceStatus(str, Enum):
    REGISTRADA = "registrada"
    NOTIFICADO = "notificado"
    EM_DEFESA = "em_defesa"
    ARQUIVADA = "arquivada"
    ADVERTIDO = "advertido"
    MULTADO = "multado"


# Only occurrences that actually reached a resident consume plan quota
COUNTED_STATUSES = frozenset({
    OccurrenceStatus.NOTIFICADO,
    OccurrenceStatus.ARQUIVADA,
    OccurrenceStatus.ADVERTIDO,
    OccurrenceStatus.MULTADO,
})

RESOURCE_BY_TYPE = {
    OccurrenceType.NOTIFICACAO: "notifications",
    OccurrenceType.ADVERTENCIA: "warnings",
    OccurrenceType.MULTA: "fines",
}
