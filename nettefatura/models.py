"""
Modelos de dados do cliente NetteFatura.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional


class CustomerType(IntEnum):
    INDIVIDUAL = 1  # Bireysel
    CORPORATE = 2  # Kurumsal


class SendingType(IntEnum):
    ELECTRONIC = 1
    PAPER = 2


@dataclass
class Customer:
    """Cliente a criar no portal (alıcı).

    tax_number é o TC Kimlik No / VKN. Não é único no portal: muitas faturas
    individuais partilham um id genérico, por isso nunca serve de chave.
    """
    name: str
    tax_number: str
    email: str = ""
    phone: str = ""
    address: str = ""
    city_id: str = ""
    city_name: str = ""
    district_id: str = ""
    postal_code: str = ""
    building_no: str = ""
    tax_office_id: str = ""
    customer_type: Optional[CustomerType] = None
    sending_type: Optional[SendingType] = None


@dataclass
class Candidate:
    """Linha da listagem de clientes com nome igual ao cliente pedido."""
    id: str
    name: str
    city_id: str = ""
    district_id: str = ""
    state: str = ""
    position: int = 0


@dataclass
class CandidateDetail:
    name: str = ""
    tax_number: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    postal_code: str = ""
    building_no: str = ""
    city_id: str = ""
    # A página de detalhe não expõe o distrito.
    district_id: str = ""


@dataclass
class ScoredCandidate:
    candidate: Candidate
    score: float
    detail: Optional[CandidateDetail] = None


@dataclass
class RecipientPage:
    """Envelope da listagem (contrato DataTables)."""
    draw: int
    records_total: int
    records_filtered: int
    rows: List[Candidate] = field(default_factory=list)


@dataclass
class Product:
    name: str
    quantity: float
    price: float  # preço unitário sem IVA (KDV hariç)
    vat_rate: int  # %


@dataclass
class Invoice:
    customer_id: str
    products: List[Product] = field(default_factory=list)
    date: Optional[dt.datetime] = None
    notes: List[str] = field(default_factory=list)
