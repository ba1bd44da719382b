"""
Lookup de províncias (il) e distritos (ilçe) do portal NetteFatura.

O dataset é um asset de build (data/il-ilce-data.json). É carregado de forma
explícita com load_locations(); uma falha de carregamento indica defeito de
empacotamento e é o único erro tratado como fatal no arranque.

Todas as funções de lookup devolvem o sentinela "-1" / -1 em vez de falhar.
"""

from __future__ import annotations

import json
import logging
import threading
import unicodedata
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from nettefatura.exceptions import LocationDataError


LOGGER = logging.getLogger(__name__)

DEFAULT_DATA_PATH = Path(__file__).parent / "data" / "il-ilce-data.json"

NOT_FOUND = "-1"
NOT_FOUND_ID = -1

CENTRAL_KEYWORD = "merkez"

_TURKISH_FOLD = str.maketrans({
    "ğ": "g", "Ğ": "g",
    "ü": "u", "Ü": "u",
    "ş": "s", "Ş": "s",
    "ı": "i", "I": "i", "İ": "i",
    "ö": "o", "Ö": "o",
    "ç": "c", "Ç": "c",
})


def normalize_location_name(s: str) -> str:
    """Lower-case + remoção de diacríticos (turcos e outros, ex.: "Hakkâri")."""
    if not s:
        return ""
    s = s.strip().translate(_TURKISH_FOLD).lower()
    decomposed = unicodedata.normalize("NFKD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


@dataclass(frozen=True)
class City:
    id: str
    name: str


@dataclass(frozen=True)
class District:
    id: int
    name: str


class LocationIndex:
    """Índice imutável, seguro para leituras concorrentes."""

    def __init__(self, cities: Tuple[City, ...], districts: Mapping[str, Tuple[District, ...]]) -> None:
        self._cities = cities
        self._districts = MappingProxyType(dict(districts))

    @property
    def cities(self) -> Tuple[City, ...]:
        return self._cities

    def districts_of(self, city_id: str) -> Tuple[District, ...]:
        return self._districts.get(city_id, ())

    def city_id(self, city_name: str) -> str:
        normalized = normalize_location_name(city_name)
        for city in self._cities:
            if normalize_location_name(city.name) == normalized:
                return city.id
        return NOT_FOUND

    def district_id(self, city_id: str, district_name: str) -> int:
        districts = self._districts.get(city_id)
        if not districts:
            return NOT_FOUND_ID

        normalized = normalize_location_name(district_name)
        province = self.city_name(city_id)
        province_normalized = normalize_location_name(province) if province != NOT_FOUND else ""

        wants_central = CENTRAL_KEYWORD in normalized or (
            bool(province_normalized) and normalized == province_normalized
        )
        if wants_central:
            # (a) distrito central com o nome da província, (b) qualquer distrito central
            for district in districts:
                d = normalize_location_name(district.name)
                if CENTRAL_KEYWORD in d and province_normalized and province_normalized in d:
                    return district.id
            for district in districts:
                if CENTRAL_KEYWORD in normalize_location_name(district.name):
                    return district.id

        for district in districts:
            if normalize_location_name(district.name) == normalized:
                return district.id
        return NOT_FOUND_ID

    def district_id_by_names(self, city_name: str, district_name: str) -> int:
        city_id = self.city_id(city_name)
        if city_id == NOT_FOUND:
            return NOT_FOUND_ID
        return self.district_id(city_id, district_name)

    def city_name(self, city_id: str) -> str:
        for city in self._cities:
            if city.id == city_id:
                return city.name
        return NOT_FOUND

    def district_name(self, city_id: str, district_id: int) -> str:
        for district in self._districts.get(city_id, ()):
            if district.id == district_id:
                return district.name
        return NOT_FOUND


def load_locations(path: Optional[Path] = None) -> LocationIndex:
    """Carrega o dataset il/ilçe. Levanta LocationDataError se o asset estiver ausente ou inválido."""
    data_path = Path(path) if path else DEFAULT_DATA_PATH
    try:
        payload = json.loads(data_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise LocationDataError(f"failed to load il-ilce data from {data_path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise LocationDataError(f"il-ilce data in {data_path} is not a JSON object")

    try:
        cities = tuple(City(id=str(c["id"]), name=str(c["name"])) for c in payload.get("cities") or [])
        districts = {
            str(city_id): tuple(District(id=int(d["id"]), name=str(d["name"])) for d in items)
            for city_id, items in (payload.get("districts") or {}).items()
        }
    except (KeyError, TypeError, ValueError) as exc:
        raise LocationDataError(f"invalid il-ilce record in {data_path}: {exc}") from exc

    if not cities:
        raise LocationDataError(f"il-ilce data in {data_path} has no cities")

    LOGGER.debug("Loaded %s cities, %s district lists from %s", len(cities), len(districts), data_path)
    return LocationIndex(cities, districts)


_DEFAULT_INDEX: Optional[LocationIndex] = None
_DEFAULT_LOCK = threading.Lock()


def default_locations() -> LocationIndex:
    """Índice do dataset embutido, carregado uma vez por processo."""
    global _DEFAULT_INDEX
    with _DEFAULT_LOCK:
        if _DEFAULT_INDEX is None:
            _DEFAULT_INDEX = load_locations()
        return _DEFAULT_INDEX
