# heater_backend/core/catalogs.py
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from heater_backend.core.errors import CatalogLoadError
from heater_backend.core.state import ErrorDescriptor, ValueDescriptor
from heater_backend.data.repository import HeaterRepository


logger = logging.getLogger(__name__)


class ValueCatalog:
    """
    Katalog typów wartości: id -> ValueDescriptor.

    Ładowany raz przy starcie; potem tylko do odczytu. Jedyna ścieżka zmiany
    to reload() po zmianie flag logowania przez administratora.
    """

    def __init__(self, repository: HeaterRepository) -> None:
        self._repository = repository
        self._lock = threading.Lock()
        self._items: Dict[int, ValueDescriptor] = {}
        self._loaded = False

    def load(self) -> Dict[int, ValueDescriptor]:
        try:
            descriptors = self._repository.load_value_descriptors()
        except Exception as exc:
            raise CatalogLoadError(f"Loading value descriptors failed: {exc}") from exc

        items = {d.id: d for d in descriptors}
        with self._lock:
            self._items = items
            self._loaded = True

        logger.info("Value catalog loaded: %d value types", len(items))
        return dict(items)

    def reload(self, ids: Optional[Iterable[int]] = None) -> List[ValueDescriptor]:
        """
        Przeładowuje wpisy z repozytorium (wszystkie albo tylko podane id).
        Zwraca zmienione/przeładowane opisy.
        """
        fresh = {d.id: d for d in self._repository.load_value_descriptors()}
        wanted = set(fresh) if ids is None else set(ids)

        changed: List[ValueDescriptor] = []
        with self._lock:
            items = dict(self._items)
            for vid in wanted:
                if vid in fresh:
                    items[vid] = fresh[vid]
                    changed.append(fresh[vid])
            self._items = items
        return changed

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self, value_type_id: int) -> Optional[ValueDescriptor]:
        return self._items.get(value_type_id)

    def __contains__(self, value_type_id: object) -> bool:
        return value_type_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def all(self) -> Dict[int, ValueDescriptor]:
        return dict(self._items)


class ErrorCatalog:
    """
    Katalog tekstów błędów: id -> ErrorDescriptor.

    Rośnie w trakcie pracy: nieznany tekst błędu dostaje nowe id z repozytorium.
    Mapowanie tekst -> id nigdy się nie zmienia. Dla jednego tekstu powstaje
    co najwyżej jeden wpis (zapis serializowany per tekst).
    """

    def __init__(self, repository: HeaterRepository) -> None:
        self._repository = repository
        self._by_id: Dict[int, ErrorDescriptor] = {}
        self._by_text: Dict[str, int] = {}

        # _lock chroni słowniki i rejestr blokad per tekst
        self._lock = threading.Lock()
        self._text_locks: Dict[str, threading.Lock] = {}

    def load(self) -> Dict[int, ErrorDescriptor]:
        try:
            descriptors = self._repository.load_error_descriptors()
        except Exception as exc:
            raise CatalogLoadError(f"Loading error descriptors failed: {exc}") from exc

        with self._lock:
            for d in descriptors:
                self._add_locked(d)
            count = len(self._by_id)

        logger.info("Error catalog loaded: %d error descriptions", count)
        return self.all()

    def _add_locked(self, descriptor: ErrorDescriptor) -> None:
        self._by_id.setdefault(descriptor.id, descriptor)
        # pierwszy wpis dla danego tekstu wygrywa
        self._by_text.setdefault(descriptor.text, descriptor.id)

    def find(self, text: str) -> Optional[int]:
        with self._lock:
            return self._by_text.get(text)

    def resolve_or_create(self, text: str) -> int:
        found = self.find(text)
        if found is not None:
            return found

        with self._lock:
            text_lock = self._text_locks.setdefault(text, threading.Lock())

        with text_lock:
            # ktoś mógł dodać ten tekst, gdy czekaliśmy na blokadę
            found = self.find(text)
            if found is not None:
                return found

            new_id = int(self._repository.insert_error(text))
            with self._lock:
                self._add_locked(ErrorDescriptor(id=new_id, text=text))
                self._text_locks.pop(text, None)
                resolved = self._by_text[text]

        logger.info("Registered new heater error %r as id %d", text, resolved)
        return resolved

    def get(self, error_id: int) -> Optional[ErrorDescriptor]:
        with self._lock:
            return self._by_id.get(error_id)

    def all(self) -> Dict[int, ErrorDescriptor]:
        with self._lock:
            return dict(self._by_id)
