import io
from datetime import datetime

import pytest

from carburanti.domain.mimit.errors import MalformedField, TransportError, UnexpectedShape
from carburanti.domain.mimit.models import DuplicateStation, SkippedRow
from carburanti.domain.mimit.service import MimitFeedReader
from carburanti.extractors.mimit_specs import MIMIT_PRICES_URL, MIMIT_STATIONS_URL, FeedConfig


# ---------- fakes (sem internet) ----------

class FakeRaw(io.BytesIO):
    decode_content = False


class FakeResponse:
    def __init__(self, content: bytes, status_code: int = 200):
        self.raw = FakeRaw(content)
        self.status_code = status_code
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP error {self.status_code}")

    def close(self):
        self.closed = True


class FakeTransport:
    """Responde por URL; guarda as chamadas."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls = []

    def get(self, url: str, headers=None, stream=False):
        self.calls.append(url)
        return self.responses[url]


PRICES_HEADER = "Estrazione del 2024-01-01\nidImpianto;descCarburante;prezzo;isSelf;dtComu\n"
STATIONS_HEADER = (
    "Estrazione del 2024-01-01\n"
    "idImpianto;Gestore;Bandiera;Tipo Impianto;Nome Impianto;Indirizzo;Comune;Provincia;Latitudine;Longitudine\n"
)


def _csv(header: str, *rows: str) -> bytes:
    return (header + "".join(r + "\n" for r in rows)).encode("utf-8")


# ---------- prezzi ----------

def test_fetch_prices_uses_default_url_and_parses_rows(caplog):
    resp = FakeResponse(
        _csv(
            PRICES_HEADER,
            "1;Benzina;1.739;1;1/1/2024 08:00:00",
            "1;Gasolio;1.650;0;1/1/2024 08:05:00",
        )
    )
    transport = FakeTransport({MIMIT_PRICES_URL: resp})

    caplog.set_level("INFO")
    records = MimitFeedReader(transport).fetch_prices()

    assert transport.calls == [MIMIT_PRICES_URL]
    assert [r.carburante for r in records] == ["Benzina", "Gasolio"]
    assert [r.prezzo for r in records] == pytest.approx([1.739, 1.650])
    assert [r.self_service for r in records] == [True, False]
    assert records[1].data_comunicazione == datetime(2024, 1, 1, 8, 5, 0)
    assert resp.closed
    assert "Prezzi carregados. registros=2" in caplog.text


def test_fetch_prices_shape_error_aborts_and_closes_response():
    resp = FakeResponse(
        _csv(
            PRICES_HEADER,
            "1;Benzina;1.739;1;1/1/2024 08:00:00",
            "2;Benzina;1.800;1;1/1/2024 08:00:00;extra",
        )
    )
    reader = MimitFeedReader(FakeTransport({MIMIT_PRICES_URL: resp}))

    with pytest.raises(UnexpectedShape) as exc:
        reader.fetch_prices()
    # linha 4 da fonte (2 de cabeçalho + 2 de dados)
    assert exc.value.line == 4
    assert resp.closed


def test_fetch_prices_http_error_is_transport_error():
    resp = FakeResponse(b"", status_code=404)
    reader = MimitFeedReader(FakeTransport({MIMIT_PRICES_URL: resp}))

    with pytest.raises(TransportError) as exc:
        reader.fetch_prices()
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_fetch_prices_with_fixture_urls_from_config():
    cfg = FeedConfig(prices_url="http://fixture/prezzi.csv", header_lines=1)
    resp = FakeResponse(b"solo intestazione\n9;HVO;2.1;true;12/6/2024 18:30:00\n")
    transport = FakeTransport({"http://fixture/prezzi.csv": resp})

    records = MimitFeedReader(transport, cfg=cfg).fetch_prices()

    assert transport.calls == ["http://fixture/prezzi.csv"]
    assert records[0].id_impianto == 9
    assert records[0].data_comunicazione == datetime(2024, 6, 12, 18, 30, 0)


def test_each_call_fetches_again():
    body = _csv(PRICES_HEADER, "1;Benzina;1.739;1;1/1/2024 08:00:00")
    transport = FakeTransport({MIMIT_PRICES_URL: None})
    reader = MimitFeedReader(transport)

    transport.responses[MIMIT_PRICES_URL] = FakeResponse(body)
    first = reader.fetch_prices()
    transport.responses[MIMIT_PRICES_URL] = FakeResponse(body)
    second = reader.fetch_prices()

    assert first == second
    assert first is not second
    assert len(transport.calls) == 2


# ---------- impianti ----------

def test_fetch_stations_duplicate_keeps_second_row_and_emits_one_event():
    resp = FakeResponse(
        _csv(
            STATIONS_HEADER,
            "100;Rossi Srl;Agip Eni;Stradale;Uno;Via Roma 1;Milano;MI;45.46;9.19",
            "100;Bianchi Spa;IP;Autostradale;Due;A1 km 12;Lodi;LO;45.31;9.50",
        )
    )
    events = []
    reader = MimitFeedReader(FakeTransport({MIMIT_STATIONS_URL: resp}), on_event=events.append)

    stations = reader.fetch_stations()

    assert list(stations) == [100]
    assert stations[100].gestore == "Bianchi Spa"
    assert stations[100].tipo == "Autostradale"
    assert events == [DuplicateStation(id_impianto=100, tipo_precedente="Stradale", tipo="Autostradale", line=4)]
    assert resp.closed


def test_fetch_stations_is_lenient_on_shape_but_prices_are_strict():
    station_resp = FakeResponse(
        _csv(
            STATIONS_HEADER,
            "1;Rossi Srl;Agip Eni;Stradale;Uno;Via Roma 1;Milano;MI;45.46;9.19",
            "2;troppo;corta",
            "3;Verdi;Esso;Stradale;Tre;Via Po 3;Torino;TO;45.07;7.68",
        )
    )
    price_resp = FakeResponse(_csv(PRICES_HEADER, "1;Benzina;1.7;1;1/1/2024 08:00:00", "2;troppo;corta"))
    events = []
    reader = MimitFeedReader(
        FakeTransport({MIMIT_STATIONS_URL: station_resp, MIMIT_PRICES_URL: price_resp}),
        on_event=events.append,
    )

    stations = reader.fetch_stations()
    assert sorted(stations) == [1, 3]
    assert events == [SkippedRow(line=4, expected=10, got=3)]

    with pytest.raises(UnexpectedShape):
        reader.fetch_prices()


def test_fetch_stations_bad_id_fails_whole_call():
    resp = FakeResponse(
        _csv(
            STATIONS_HEADER,
            "1;Rossi Srl;Agip Eni;Stradale;Uno;Via Roma 1;Milano;MI;45.46;9.19",
            "N/D;Verdi;Esso;Stradale;Tre;Via Po 3;Torino;TO;45.07;7.68",
        )
    )
    reader = MimitFeedReader(FakeTransport({MIMIT_STATIONS_URL: resp}), on_event=lambda e: None)

    with pytest.raises(MalformedField):
        reader.fetch_stations()
    assert resp.closed


def test_fetch_stations_logs_summary(caplog):
    resp = FakeResponse(
        _csv(
            STATIONS_HEADER,
            "1;Rossi Srl;Agip Eni;Stradale;Uno;Via Roma 1;Milano;MI;45.46;9.19",
            "x",
            "1;Rossi Srl;Agip Eni;Stradale;Uno;Via Roma 1;Milano;MI;45.46;9.19",
        )
    )
    caplog.set_level("INFO")
    MimitFeedReader(FakeTransport({MIMIT_STATIONS_URL: resp})).fetch_stations()

    assert "Impianti carregados. impianti=1 pulados=1 duplicados=1" in caplog.text
    assert "Impianto duplicado" in caplog.text


def test_module_level_fetch_functions_build_requests_transport(monkeypatch):
    from carburanti.domain.mimit import service

    built = []

    def _fake_transport(http_cfg=None):
        built.append(http_cfg)
        return FakeTransport(
            {
                MIMIT_PRICES_URL: FakeResponse(_csv(PRICES_HEADER, "1;Benzina;1.7;1;1/1/2024 08:00:00")),
                MIMIT_STATIONS_URL: FakeResponse(
                    _csv(STATIONS_HEADER, "1;Rossi Srl;Agip Eni;Stradale;Uno;Via Roma 1;Milano;MI;45.46;9.19")
                ),
            }
        )

    monkeypatch.setattr(service, "RequestsTransport", _fake_transport)

    assert len(service.fetch_prices()) == 1
    assert list(service.fetch_stations()) == [1]
    assert built == [None, None]


def test_fetch_stations_keeps_latin1_bytes_and_other_rows():
    body = STATIONS_HEADER.encode("utf-8") + (
        b"1;Societ\xe0 Rossi;Agip Eni;Stradale;Uno;Via Roma 1;Forl\xec;FC;44.2;12.0\n"
        b"2;Verdi;Esso;Stradale;Due;Via Po 3;Torino;TO;45.07;7.68\n"
    )
    resp = FakeResponse(body)

    stations = MimitFeedReader(FakeTransport({MIMIT_STATIONS_URL: resp}), on_event=lambda e: None).fetch_stations()

    assert sorted(stations) == [1, 2]
    assert stations[1].gestore.encode("utf-8", "surrogateescape") == b"Societ\xe0 Rossi"
    assert stations[1].comune.encode("utf-8", "surrogateescape") == b"Forl\xec"
    assert stations[2].comune == "Torino"
