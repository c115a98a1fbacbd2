from __future__ import annotations

import csv
import logging
import re
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from carburanti.domain.mimit.errors import MalformedField, UnexpectedShape
from carburanti.domain.mimit.models import (
    PRICE_FIELDS,
    STATION_FIELDS,
    DuplicateStation,
    PriceRecord,
    SkippedRow,
    Station,
    StationID,
)

logger = logging.getLogger(__name__)

FeedEvent = Union[SkippedRow, DuplicateStation]
EventObserver = Callable[[FeedEvent], None]


def log_feed_event(event: FeedEvent) -> None:
    """Observer default: só loga."""
    if isinstance(event, SkippedRow):
        logger.warning(
            "Registro malformado pulado. linha=%s esperados=%s campos=%s",
            event.line,
            event.expected,
            event.got,
        )
    elif isinstance(event, DuplicateStation):
        logger.warning(
            "Impianto duplicado; mantida a última ocorrência. id=%s tipo_anterior=%r tipo=%r linha=%s",
            event.id_impianto,
            event.tipo_precedente,
            event.tipo,
            event.line,
        )


# ----------------------------
# Conversores de campo
# ----------------------------

_RE_INT = re.compile(r"[+-]?[0-9]+")
_RE_COMM_DATE = re.compile(r"([0-9]{1,2})/([0-9]{1,2})/([0-9]{4}) ([0-9]{1,2}):([0-9]{2}):([0-9]{2})")

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def parse_int(s: str, *, field: str = "id_impianto", line: Optional[int] = None) -> int:
    if not _RE_INT.fullmatch(s):
        raise MalformedField(field, s, line, "não é um inteiro base 10")
    return int(s)


def parse_float(s: str, *, field: str = "prezzo", line: Optional[int] = None) -> float:
    # decimal com ponto, só ASCII; vírgula, espaço ou "_" não são aceitos
    if s == "" or not s.isascii() or s != s.strip() or "," in s or "_" in s:
        raise MalformedField(field, s, line, "não é um float")
    try:
        return float(s)
    except ValueError as exc:
        raise MalformedField(field, s, line, "não é um float") from exc


def parse_bool(s: str, *, field: str = "self_service", line: Optional[int] = None) -> bool:
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise MalformedField(field, s, line, "não é um booleano")


def parse_comm_date(s: str, *, field: str = "data_comunicazione", line: Optional[int] = None) -> datetime:
    """
    Formato da fonte: D/M/YYYY H:MM:SS (dia/mês/hora com 1 ou 2 dígitos).
    Ex: "1/1/2024 08:00:00", "27/11/2023 17:45:03".
    """
    m = _RE_COMM_DATE.fullmatch(s)
    if not m:
        raise MalformedField(field, s, line, "esperado D/M/YYYY HH:MM:SS")
    day, month, year, hour, minute, second = (int(g) for g in m.groups())
    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError as exc:
        raise MalformedField(field, s, line, str(exc)) from exc


# ----------------------------
# Linha CSV -> entidade
# ----------------------------

def row_to_price(items: Sequence[str], *, line: Optional[int] = None) -> PriceRecord:
    if len(items) != PRICE_FIELDS:
        raise UnexpectedShape(line or 0, PRICE_FIELDS, len(items))

    return PriceRecord(
        id_impianto=parse_int(items[0], field="id_impianto", line=line),
        carburante=items[1],
        prezzo=parse_float(items[2], field="prezzo", line=line),
        self_service=parse_bool(items[3], field="self_service", line=line),
        data_comunicazione=parse_comm_date(items[4], field="data_comunicazione", line=line),
    )


def row_to_station(items: Sequence[str], *, line: Optional[int] = None) -> Station:
    if len(items) != STATION_FIELDS:
        raise UnexpectedShape(line or 0, STATION_FIELDS, len(items))

    return Station(
        id_impianto=parse_int(items[0], field="id_impianto", line=line),
        gestore=items[1],
        bandiera=items[2],
        tipo=items[3],
        nome=items[4],
        indirizzo=items[5],
        comune=items[6],
        provincia=items[7],
        lat=items[8],
        long=items[9],
    )


# ----------------------------
# Scan completo (cabeçalho já descartado)
# ----------------------------

# csv.reader só corta no delimitador (QUOTE_NONE); as aspas são resolvidas campo a campo.

_Q = '"'


def _stray_quotes(s: str) -> bool:
    return _Q in s.replace(_Q + _Q, "")


def _trailing_quotes(s: str) -> int:
    return len(s) - len(s.rstrip(_Q))


def _opens_quoted(piece: str) -> bool:
    """Campo que abre aspas e não fecha no mesmo pedaço (ex: '"Via Roma' de '"Via Roma; 1"')."""
    if not piece.startswith(_Q):
        return False
    body = piece[1:]
    return _trailing_quotes(body) % 2 == 0 and not _stray_quotes(body)


def _merge_quoted(pieces: List[str], delimiter: str) -> List[str]:
    """Recola os pedaços de um campo entre aspas que contém o delimitador."""
    out: List[str] = []
    i = 0
    while i < len(pieces):
        p = pieces[i]
        if _opens_quoted(p):
            for j in range(i + 1, len(pieces)):
                q = pieces[j]
                if _trailing_quotes(q) % 2 == 1 and not _stray_quotes(q[:-1]):
                    p = delimiter.join(pieces[i : j + 1])
                    i = j
                    break
                if _stray_quotes(q):
                    break
        out.append(p)
        i += 1
    return out


def _unquote(field: str, *, lazy: bool) -> str:
    """
    - campo sem aspas de abertura: verbatim (no modo estrito, aspa no meio é erro);
    - "abc" -> abc, com "" -> ";
    - lazy: aspas que não fecham o campo ficam literais ('"Q8" Easy' -> 'Q8" Easy').
    """
    if not field.startswith(_Q):
        if not lazy and _Q in field:
            raise ValueError(f"aspa solta em campo sem aspas: {field!r}")
        return field

    body = field[1:]
    if body.endswith(_Q) and not _stray_quotes(body[:-1]):
        return body[:-1].replace(_Q + _Q, _Q)
    if not lazy:
        raise ValueError(f"campo entre aspas malformado: {field!r}")
    if body.endswith(_Q):
        return body[:-1].replace(_Q + _Q, _Q)
    return body


def _iter_rows(lines: Iterable[str], *, delimiter: str, lazy: bool, line_offset: int, expected: int):
    """
    Tokeniza as linhas e devolve (n_linha_na_fonte, campos).
    Linhas em branco são ignoradas.
    """
    reader = csv.reader(lines, delimiter=delimiter, quoting=csv.QUOTE_NONE)
    while True:
        try:
            pieces = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            raise UnexpectedShape(line_offset + reader.line_num, expected, 0, f"CSV inválido: {exc}") from exc
        if not pieces:
            continue

        line = line_offset + reader.line_num
        try:
            items = [_unquote(f, lazy=lazy) for f in _merge_quoted(pieces, delimiter)]
        except ValueError as exc:
            raise UnexpectedShape(line, expected, len(pieces), f"CSV inválido: {exc}") from exc
        yield line, items


def parse_prices(
    lines: Iterable[str],
    *,
    delimiter: str = ";",
    line_offset: int = 0,
) -> List[PriceRecord]:
    """
    Modo estrito: qualquer linha com != 5 campos ou campo inválido derruba o lote inteiro.
    Retorna os registros na ordem da fonte.
    """
    out: List[PriceRecord] = []
    for line, items in _iter_rows(
        lines, delimiter=delimiter, lazy=False, line_offset=line_offset, expected=PRICE_FIELDS
    ):
        out.append(row_to_price(items, line=line))
    return out


def parse_stations(
    lines: Iterable[str],
    *,
    delimiter: str = ";",
    line_offset: int = 0,
    on_event: Optional[EventObserver] = None,
) -> Dict[StationID, Station]:
    """
    Modo leniente para o formato da linha:
      - linha com != 10 campos: pulada (evento SkippedRow) e o scan continua;
      - id_impianto inválido: falha a chamada inteira (MalformedField);
      - id repetido: última ocorrência vence (evento DuplicateStation).
    """
    emit = on_event or log_feed_event
    stations: Dict[StationID, Station] = {}

    for line, items in _iter_rows(
        lines, delimiter=delimiter, lazy=True, line_offset=line_offset, expected=STATION_FIELDS
    ):
        if len(items) != STATION_FIELDS:
            emit(SkippedRow(line=line, expected=STATION_FIELDS, got=len(items)))
            continue

        st = row_to_station(items, line=line)
        previous = stations.get(st.id_impianto)
        if previous is not None:
            emit(
                DuplicateStation(
                    id_impianto=st.id_impianto,
                    tipo_precedente=previous.tipo,
                    tipo=st.tipo,
                    line=line,
                )
            )
        stations[st.id_impianto] = st

    return stations
