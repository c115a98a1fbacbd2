from __future__ import annotations

from typing import Optional


class CarburantiError(RuntimeError):
    pass


class TransportError(CarburantiError):
    """Falha no GET (conexão, timeout, status HTTP)."""


class StreamError(CarburantiError):
    """Falha lendo o cabeçalho ou os bytes do corpo."""


class MalformedField(CarburantiError):
    def __init__(self, field: str, value: str, line: Optional[int] = None, reason: str = ""):
        self.field = field
        self.value = value
        self.line = line
        where = f" (linha {line})" if line is not None else ""
        msg = f"{field} inválido{where}: {value!r}"
        if reason:
            msg = f"{msg} - {reason}"
        super().__init__(msg)


class UnexpectedShape(CarburantiError):
    def __init__(self, line: int, expected: int, got: int, reason: str = ""):
        self.line = line
        self.expected = expected
        self.got = got
        msg = reason or f"esperados {expected} campos, vieram {got}"
        super().__init__(f"Registro malformado na linha {line}: {msg}")
