from __future__ import annotations


class HeaterDataError(Exception):
    """Bazowy wyjątek serwera danych pieca."""


class CatalogLoadError(HeaterDataError):
    """Nie udało się załadować katalogu wartości / błędów – serwer nie może działać."""


class CatalogNotReadyError(HeaterDataError):
    """Katalogi nie zostały załadowane w zadanym czasie."""


class MissingValueTypeError(HeaterDataError):
    """Brak wymaganego typu wartości w katalogu (błąd konfiguracji wdrożenia)."""

    def __init__(self, value_type_id: int, purpose: str) -> None:
        super().__init__(
            f"Value type {value_type_id} ({purpose}) is missing from the value catalog"
        )
        self.value_type_id = value_type_id
        self.purpose = purpose
