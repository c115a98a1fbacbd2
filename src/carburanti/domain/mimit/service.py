from __future__ import annotations

import logging
from typing import Dict, List, Optional

from carburanti.domain.mimit.models import DuplicateStation, PriceRecord, SkippedRow, Station, StationID
from carburanti.domain.mimit.parsing import EventObserver, FeedEvent, log_feed_event, parse_prices, parse_stations
from carburanti.extractors.mimit_raw import open_feed
from carburanti.extractors.mimit_specs import FeedConfig
from carburanti.utils.io.http import HTTPConfig, HttpTransport, RequestsTransport

logger = logging.getLogger(__name__)


class MimitFeedReader:
    """
    Baixa e parseia os dois CSVs MIMIT (prezzi e anagrafica impianti).

    Sem cache e sem estado entre chamadas: cada fetch_* refaz o download
    e devolve uma coleção nova.
    """

    def __init__(
        self,
        transport: HttpTransport,
        cfg: Optional[FeedConfig] = None,
        on_event: Optional[EventObserver] = None,
    ):
        self.transport = transport
        self.cfg = cfg or FeedConfig()
        self.on_event = on_event or log_feed_event

    def fetch_prices(self) -> List[PriceRecord]:
        cfg = self.cfg
        with open_feed(
            self.transport,
            cfg.prices_url,
            header_lines=cfg.header_lines,
            encoding=cfg.encoding,
            errors=cfg.errors,
        ) as feed:
            records = parse_prices(feed, delimiter=cfg.delimiter, line_offset=cfg.header_lines)

        logger.info("Prezzi carregados. registros=%s url=%s", len(records), cfg.prices_url)
        return records

    def fetch_stations(self) -> Dict[StationID, Station]:
        cfg = self.cfg
        skipped = 0
        duplicates = 0

        def _count(event: FeedEvent) -> None:
            nonlocal skipped, duplicates
            if isinstance(event, SkippedRow):
                skipped += 1
            elif isinstance(event, DuplicateStation):
                duplicates += 1
            self.on_event(event)

        with open_feed(
            self.transport,
            cfg.stations_url,
            header_lines=cfg.header_lines,
            encoding=cfg.encoding,
            errors=cfg.errors,
        ) as feed:
            stations = parse_stations(
                feed, delimiter=cfg.delimiter, line_offset=cfg.header_lines, on_event=_count
            )

        logger.info(
            "Impianti carregados. impianti=%s pulados=%s duplicados=%s url=%s",
            len(stations),
            skipped,
            duplicates,
            cfg.stations_url,
        )
        return stations


def _default_reader(
    cfg: Optional[FeedConfig],
    http_cfg: Optional[HTTPConfig],
    on_event: Optional[EventObserver],
) -> MimitFeedReader:
    return MimitFeedReader(RequestsTransport(http_cfg), cfg=cfg, on_event=on_event)


def fetch_prices(
    cfg: Optional[FeedConfig] = None,
    http_cfg: Optional[HTTPConfig] = None,
) -> List[PriceRecord]:
    return _default_reader(cfg, http_cfg, None).fetch_prices()


def fetch_stations(
    cfg: Optional[FeedConfig] = None,
    http_cfg: Optional[HTTPConfig] = None,
    on_event: Optional[EventObserver] = None,
) -> Dict[StationID, Station]:
    return _default_reader(cfg, http_cfg, on_event).fetch_stations()
