from __future__ import annotations

from dataclasses import asdict, fields
from typing import Iterable, Mapping

import pandas as pd

from carburanti.domain.mimit.models import PriceRecord, Station, StationID


def _dataclasses_to_df(objs: list, cls) -> pd.DataFrame:
    if not objs:
        # mantém o schema mesmo vazio
        return pd.DataFrame(columns=[f.name for f in fields(cls)])
    return pd.DataFrame([asdict(o) for o in objs])


def prices_to_df(records: Iterable[PriceRecord]) -> pd.DataFrame:
    df = _dataclasses_to_df(list(records), PriceRecord)
    if not df.empty:
        df["id_impianto"] = df["id_impianto"].astype("int64")
        df["prezzo"] = df["prezzo"].astype("float64")
        df["self_service"] = df["self_service"].astype("bool")
        df["data_comunicazione"] = pd.to_datetime(df["data_comunicazione"])
    return df


def stations_to_df(stations: Mapping[StationID, Station]) -> pd.DataFrame:
    """Uma linha por impianto, ordenado por id_impianto. lat/long continuam texto."""
    df = _dataclasses_to_df(list(stations.values()), Station)
    if not df.empty:
        df["id_impianto"] = df["id_impianto"].astype("int64")
        df = df.sort_values("id_impianto").reset_index(drop=True)
    return df
