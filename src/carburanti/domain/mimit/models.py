from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

StationID = int

# colunas de dados (sem contar o cabeçalho)
PRICE_FIELDS = 5
STATION_FIELDS = 10


class StationType:
    # valores conhecidos; o parser NÃO valida contra eles
    STRADALE = "Stradale"
    AUTOSTRADALE = "Autostradale"


@dataclass(frozen=True)
class PriceRecord:
    id_impianto: StationID   # FK lógica p/ Station (não verificada)
    carburante: str
    prezzo: float
    self_service: bool
    data_comunicazione: datetime  # naive, horário local italiano


@dataclass(frozen=True)
class Station:
    # PK
    id_impianto: StationID

    gestore: str
    bandiera: str
    tipo: str  # ver StationType
    nome: str
    indirizzo: str
    comune: str
    provincia: str

    # mantidos como texto: a fonte não garante número bem formado
    lat: str
    long: str


# ---------- Eventos de diagnóstico (não fatais) ----------

@dataclass(frozen=True)
class SkippedRow:
    line: int
    expected: int
    got: int


@dataclass(frozen=True)
class DuplicateStation:
    id_impianto: StationID
    tipo_precedente: str
    tipo: str
    line: int
