from __future__ import annotations

import io
import logging
from contextlib import contextmanager
from typing import Iterator, TextIO

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from carburanti.domain.mimit.errors import StreamError, TransportError
from carburanti.utils.io.http import HttpTransport

logger = logging.getLogger(__name__)

# erros possíveis ao ler o corpo já com a conexão aberta
_READ_ERRORS = (OSError, ValueError, Urllib3HTTPError, requests.RequestException)


class FeedStream:
    """
    Corpo de um CSV MIMIT já posicionado depois do cabeçalho.

    Iterar devolve linhas de texto (com o terminador), no formato que csv.reader espera.
    Erros de leitura/decodificação viram StreamError.
    """

    def __init__(self, text: TextIO, url: str, header_lines: int):
        self._text = text
        self.url = url
        self.header_lines = header_lines

    def _readline(self) -> str:
        try:
            return self._text.readline()
        except _READ_ERRORS as exc:
            raise StreamError(f"Falha lendo o corpo de {self.url}") from exc

    def skip_header(self) -> None:
        for i in range(self.header_lines):
            if not self._readline():
                raise StreamError(
                    f"Stream terminou no cabeçalho: {i} de {self.header_lines} linhas lidas. url={self.url}"
                )

    def __iter__(self) -> Iterator[str]:
        while True:
            line = self._readline()
            if not line:
                return
            yield line


@contextmanager
def open_feed(
    transport: HttpTransport,
    url: str,
    *,
    header_lines: int = 2,
    encoding: str = "utf-8",
    errors: str = "surrogateescape",
) -> Iterator[FeedStream]:
    """
    GET no CSV e entrega o corpo sem o cabeçalho.

    Bytes inválidos no encoding ficam como surrogates (errors="surrogateescape"):
    `campo.encode(encoding, "surrogateescape")` devolve os bytes originais.

    A resposta é fechada em qualquer saída (sucesso, erro de parse, erro de transporte).
    """
    logger.info("Baixando feed MIMIT. url=%s", url)
    try:
        r = transport.get(url, stream=True)
    except Exception as exc:
        raise TransportError(f"Falha ao baixar feed MIMIT url={url}") from exc

    try:
        try:
            r.raise_for_status()
        except Exception as exc:
            raise TransportError(
                f"Falha ao baixar feed MIMIT url={url} status={getattr(r, 'status_code', None)}"
            ) from exc

        raw = r.raw
        # descomprime gzip/deflate se o servidor mandar Content-Encoding
        raw.decode_content = True
        text = io.TextIOWrapper(raw, encoding=encoding, errors=errors, newline="")

        feed = FeedStream(text, url=url, header_lines=header_lines)
        feed.skip_header()
        yield feed
    finally:
        r.close()
