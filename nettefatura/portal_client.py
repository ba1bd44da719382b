"""
Cliente HTTP do portal NetteFatura (imitação de browser).

O portal não tem API estável: cada operação lê uma página HTML para obter o
token anti-forgery e submete um formulário com X-Requested-With, sobre uma
sessão com cookies. Nenhuma operação é repetida em caso de falha.
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from nettefatura.config import PortalConfig
from nettefatura.exceptions import (
    CreateFailed,
    CustomerAlreadyRegistered,
    CustomerValidationError,
    IdMissing,
    InvoiceCreateFailed,
    PortalDecodeError,
    PortalHTTPError,
)
from nettefatura.invoice import build_invoice_payload
from nettefatura.models import (
    Candidate,
    CandidateDetail,
    Customer,
    CustomerType,
    Invoice,
    RecipientPage,
    SendingType,
)
from nettefatura.session import PortalSession
from nettefatura.similarity import fold_case


LOGGER = logging.getLogger(__name__)

CREATE_QUICK_PAGE_PATH = "/Invoice/CreateQuick"
RECIPIENT_CREATE_PATH = "/Recipient/Create"
RECIPIENT_LIST_PAGE_PATH = "/Recipient"
RECIPIENT_LIST_PATH = "/Recipient/List"
RECIPIENT_DETAIL_PATH_TMPL = "/Recipient/Edit/{id}"
INVOICE_CREATE_PATH = "/Invoice/Create"

DEFAULT_LIST_LIMIT = 200

# Único sinal de duplicação: o portal não devolve código estruturado.
ALREADY_REGISTERED_MARKER = "zaten kayıtlı"

# Colunas fixas da tabela de clientes (contrato DataTables).
LIST_COLUMNS = ("IdAlici", "AliciAdi", "Vnktckn", "IlAdi", "IlceAdi", "Durum")

DETAIL_FIELD_IDS = {
    "name": "AliciAdi",
    "tax_number": "Vnktckn",
    "email": "Email",
    "phone": "Telefon",
    "address": "SokakAdi",
    "postal_code": "PostaKodu",
    "building_no": "BinaNo",
}
DETAIL_CITY_SELECT_ID = "IdIl"


# =============================================================================
# Response helpers
# =============================================================================

def _marker_fold(s: str) -> str:
    # Upper-case Turkish text may use I for ı (KAYITLI); fold both to i.
    return fold_case(s).replace("\u0131", "i")


def _id_str(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return ""
    return str(value).strip()


def _parse_json(r: requests.Response, *, operation: str) -> Any:
    try:
        return r.json()
    except ValueError as exc:
        raise PortalDecodeError(
            f"{operation}: response is not JSON (HTTP {r.status_code}): {(r.text or '')[:300]}"
        ) from exc


def translate_create_response(payload: Any) -> str:
    """Traduz a resposta de /Recipient/Create num id ou num erro tipado.

    Conhece o texto de duplicação; o resolver depende apenas do tipo
    CustomerAlreadyRegistered.
    """
    if not isinstance(payload, dict):
        raise PortalDecodeError(f"customer create: expected a JSON object, got {type(payload).__name__}")

    for key in ("error", "ErrorMessage"):
        message = payload.get(key)
        if isinstance(message, str) and message:
            if _marker_fold(ALREADY_REGISTERED_MARKER) in _marker_fold(message):
                raise CustomerAlreadyRegistered(message)
            raise CreateFailed(message)

    id_alici = payload.get("IdAlici")
    if isinstance(id_alici, (int, float)) and not isinstance(id_alici, bool):
        return f"{id_alici:.0f}"
    raise IdMissing(f"customer ID not found: {json.dumps(payload, ensure_ascii=False)}")


def parse_recipient_page(payload: Any) -> RecipientPage:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise PortalDecodeError("customer list: envelope without 'data' list")

    rows: List[Candidate] = []
    for position, row in enumerate(payload["data"]):
        if not isinstance(row, dict):
            continue
        rows.append(
            Candidate(
                id=_id_str(row.get("IdAlici")),
                name=str(row.get("AliciAdi") or ""),
                city_id=_id_str(row.get("IdIl")),
                district_id=_id_str(row.get("IdIlce")),
                state=_id_str(row.get("Durum")),
                position=position,
            )
        )
    try:
        return RecipientPage(
            draw=int(payload.get("draw") or 0),
            records_total=int(payload.get("recordsTotal") or 0),
            records_filtered=int(payload.get("recordsFiltered") or 0),
            rows=rows,
        )
    except (TypeError, ValueError) as exc:
        raise PortalDecodeError(f"customer list: invalid envelope counters: {exc}") from exc


def _element_value(soup: BeautifulSoup, element_id: str) -> str:
    el = soup.find(id=element_id)
    if el is None:
        return ""
    if el.name == "select":
        option = el.find("option", selected=True)
        return (option.get("value") or "").strip() if option else ""
    if el.name == "input":
        return (el.get("value") or "").strip()
    return el.get_text(strip=True)


def parse_recipient_detail(html_text: str) -> CandidateDetail:
    """Extrai os campos da página de edição. Campos ausentes ficam vazios."""
    soup = BeautifulSoup(html_text or "", "html.parser")
    values = {attr: _element_value(soup, element_id) for attr, element_id in DETAIL_FIELD_IDS.items()}
    return CandidateDetail(city_id=_element_value(soup, DETAIL_CITY_SELECT_ID), **values)


# =============================================================================
# NetteFatura HTTP client
# =============================================================================

class NetteFaturaClient:
    def __init__(self, config: PortalConfig, session: Optional[requests.Session] = None) -> None:
        self.config = config
        self.session = PortalSession(config.base_url, timeout=config.timeout_sec, session=session)
        self._draw = itertools.count(1)

    def login(self, vkn_tckn: Optional[str] = None, password: Optional[str] = None) -> None:
        self.session.login(vkn_tckn or self.config.vkn_tckn, password or self.config.password)

    # -------------------------------------------------------------------------
    # Customers (alıcı)
    # -------------------------------------------------------------------------

    @staticmethod
    def validate_customer(customer: Customer) -> None:
        if not customer.name:
            raise CustomerValidationError("customer name is required")
        if not customer.tax_number:
            raise CustomerValidationError("TC kimlik no / VKN is required")
        # Checked before defaults: an unset sending type does not require an email.
        if customer.sending_type == SendingType.ELECTRONIC and not customer.email:
            raise CustomerValidationError("email is required for electronic sending")

    def _customer_form(self, customer: Customer) -> Dict[str, str]:
        customer_type = customer.customer_type or CustomerType.INDIVIDUAL
        sending_type = customer.sending_type or SendingType.ELECTRONIC
        return {
            "AliciAdi": customer.name,
            "Vnktckn": customer.tax_number,
            "Email": customer.email,
            "Telefon": customer.phone,
            "FaturaGonderimSekli": str(int(sending_type)),
            "IdIl": customer.city_id,
            "IdIlce": customer.district_id,
            "IlAdi": customer.city_name,
            "IdVergiDairesi": customer.tax_office_id or "-1",
            "SokakAdi": customer.address,
            "BinaNo": customer.building_no or "1",
            "PostaKodu": customer.postal_code,
            "AliciTipi": str(int(customer_type)),
            "IdAliciTipi": "1",
            "IdFirma": self.config.company_id,
            "WebSite": "",
            "Fax": "",
            "Musterino": "",
            "IrsaliyeAlicisi": "false",
        }

    def create_customer(self, customer: Customer) -> str:
        """Cria o cliente e devolve o IdAlici.

        Levanta CustomerAlreadyRegistered quando o portal diz que já existe.
        """
        self.validate_customer(customer)
        form = self._customer_form(customer)

        with self.session.lock:
            self.session.refresh_token(CREATE_QUICK_PAGE_PATH)
            r = self.session.post_form(RECIPIENT_CREATE_PATH, form, operation="customer create")

        customer_id = translate_create_response(_parse_json(r, operation="customer create"))
        LOGGER.info("Customer created: id=%s name=%r", customer_id, customer.name)
        return customer_id

    def _list_form(self, limit: int, company_id: str) -> Dict[str, str]:
        form: Dict[str, str] = {
            "draw": str(next(self._draw)),
            "start": "0",
            "length": str(int(limit)),
            "search[value]": "",
            "search[regex]": "false",
            "order[0][column]": "0",
            "order[0][dir]": "desc",
            "IdFirma": company_id,
        }
        for i, column in enumerate(LIST_COLUMNS):
            prefix = f"columns[{i}]"
            form[f"{prefix}[data]"] = column
            form[f"{prefix}[name]"] = column
            form[f"{prefix}[searchable]"] = "true"
            form[f"{prefix}[orderable]"] = "true"
            form[f"{prefix}[search][value]"] = ""
            form[f"{prefix}[search][regex]"] = "false"
        return form

    def list_customers(self, limit: int = DEFAULT_LIST_LIMIT, company_filter: Optional[str] = None) -> RecipientPage:
        form = self._list_form(limit, company_filter or self.config.company_id)

        with self.session.lock:
            self.session.refresh_token(RECIPIENT_LIST_PAGE_PATH)
            r = self.session.post_form(RECIPIENT_LIST_PATH, form, operation="customer list")

        if r.status_code != 200:
            raise PortalHTTPError(f"customer list failed HTTP {r.status_code}: {(r.text or '')[:300]}", r.status_code)
        page = parse_recipient_page(_parse_json(r, operation="customer list"))
        LOGGER.debug(
            "Customer list: %s rows (total=%s, filtered=%s)",
            len(page.rows), page.records_total, page.records_filtered,
        )
        return page

    def get_customer_detail(self, customer_id: str) -> CandidateDetail:
        path = RECIPIENT_DETAIL_PATH_TMPL.format(id=customer_id)
        r = self.session.get(path, operation="customer detail")
        if r.status_code != 200:
            raise PortalHTTPError(f"customer detail {customer_id} failed HTTP {r.status_code}", r.status_code)
        return parse_recipient_detail(r.text)

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def _submit_invoice(self, invoice: Invoice) -> requests.Response:
        if not invoice.customer_id:
            raise InvoiceCreateFailed("customer ID is required")
        payload = build_invoice_payload(
            invoice,
            company_id=self.config.company_id,
            measure_unit=self.config.measure_unit,
            currency_code=self.config.currency_code,
        )
        form = {"jsonData": json.dumps(payload, ensure_ascii=False)}

        with self.session.lock:
            self.session.refresh_token(CREATE_QUICK_PAGE_PATH)
            return self.session.post_form(INVOICE_CREATE_PATH, form, operation="invoice create")

    def create_invoice(self, invoice: Invoice) -> str:
        """Emite a fatura e devolve o número (corpo da resposta sem aspas)."""
        r = self._submit_invoice(invoice)
        invoice_no = (r.text or "").strip().strip('"')
        if not invoice_no or "error" in invoice_no:
            raise InvoiceCreateFailed(f"invoice could not be created: {(r.text or '')[:500]}")
        LOGGER.info("Invoice created: %s (customer id=%s)", invoice_no, invoice.customer_id)
        return invoice_no

    def create_invoice_raw(self, invoice: Invoice) -> bytes:
        return self._submit_invoice(invoice).content
