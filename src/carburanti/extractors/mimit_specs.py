from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

# https://www.mimit.gov.it/index.php/it/open-data/elenco-dataset/carburanti-prezzi-praticati-e-anagrafica-degli-impianti
MIMIT_PRICES_URL = "https://www.mimit.gov.it/images/exportCSV/prezzo_alle_8.csv"
MIMIT_STATIONS_URL = "https://www.mimit.gov.it/images/exportCSV/anagrafica_impianti_attivi.csv"


@dataclass(frozen=True)
class FeedConfig:
    """
    Configuração dos dois feeds MIMIT.

    - header_lines: os CSVs publicados têm um cabeçalho fora do padrão em 2 linhas
      (uma linha "Estrazione del ..." + nomes das colunas), descartadas sem parse.
    """
    prices_url: str = MIMIT_PRICES_URL
    stations_url: str = MIMIT_STATIONS_URL
    header_lines: int = 2
    delimiter: str = ";"
    encoding: str = "utf-8"
    # bytes fora do encoding passam intactos como surrogates
    errors: str = "surrogateescape"

    def __post_init__(self):
        if self.header_lines < 0:
            raise ValueError(f"header_lines deve ser >= 0, veio {self.header_lines}")
        if len(self.delimiter) != 1:
            raise ValueError(f"delimiter deve ter 1 caractere, veio {self.delimiter!r}")

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> "FeedConfig":
        """
        Monta a config a partir de um bloco de params (ex.: lido de YAML pelo chamador).
        Chaves ausentes ficam com o default.
        """
        params = params or {}
        unknown = set(params) - {"prices_url", "stations_url", "header_lines", "delimiter", "encoding", "errors"}
        if unknown:
            raise ValueError(f"Parâmetros desconhecidos para FeedConfig: {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for key in ("prices_url", "stations_url", "delimiter", "encoding", "errors"):
            if key in params:
                kwargs[key] = str(params[key])
        if "header_lines" in params:
            kwargs["header_lines"] = int(params["header_lines"])
        return cls(**kwargs)
