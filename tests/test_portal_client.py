"""Unit tests for nettefatura.portal_client."""

from __future__ import annotations

import json
import threading
import time

import pytest

from nettefatura.config import PortalConfig
from nettefatura.exceptions import (
    ConflictKind,
    CreateFailed,
    CustomerAlreadyRegistered,
    CustomerValidationError,
    IdMissing,
    InvoiceCreateFailed,
    PortalDecodeError,
    PortalHTTPError,
)
from nettefatura.models import Customer, Invoice, Product, SendingType
from nettefatura.portal_client import (
    CREATE_QUICK_PAGE_PATH,
    INVOICE_CREATE_PATH,
    LIST_COLUMNS,
    RECIPIENT_CREATE_PATH,
    RECIPIENT_LIST_PAGE_PATH,
    RECIPIENT_LIST_PATH,
    NetteFaturaClient,
    parse_recipient_detail,
    parse_recipient_page,
    translate_create_response,
)
from nettefatura.session import TOKEN_FIELD
from tests.fakes import BlockingHTTP, FakeHTTP, FakeResponse


def _customer(**overrides) -> Customer:
    data = dict(name="Acme Ltd", tax_number="1234567890", email="info@acme.test")
    data.update(overrides)
    return Customer(**data)


DETAIL_HTML = """
<html><body><form>
  <input id="AliciAdi" name="AliciAdi" value="Acme Ltd" />
  <input id="Vnktckn" name="Vnktckn" value="1234567890" />
  <input id="Email" name="Email" value="info@acme.test" />
  <input id="SokakAdi" name="SokakAdi" value=" Atatürk Cad. No 5 " />
  <input id="PostaKodu" name="PostaKodu" value="28100" />
  <select id="IdIl" name="IdIl">
    <option value="-1">Seçiniz</option>
    <option value="06">Ankara</option>
    <option value="28" selected="selected">Giresun</option>
  </select>
</form></body></html>
"""


# =============================================================================
# Response translation
# =============================================================================

class TestTranslateCreateResponse:
    """The translator owns the duplicate marker; callers see typed errors."""

    def test_numeric_id(self) -> None:
        assert translate_create_response({"IdAlici": 12345}) == "12345"
        assert translate_create_response({"IdAlici": 12345.0, "error": ""}) == "12345"

    def test_already_registered_in_error(self) -> None:
        with pytest.raises(CustomerAlreadyRegistered) as exc_info:
            translate_create_response({"error": "Bu alıcı zaten kayıtlı."})
        assert exc_info.value.kind is ConflictKind.ALREADY_REGISTERED
        assert exc_info.value.message == "Bu alıcı zaten kayıtlı."

    def test_already_registered_in_error_message(self) -> None:
        with pytest.raises(CustomerAlreadyRegistered):
            translate_create_response({"ErrorMessage": "Alıcı Zaten Kayıtlı"})

    @pytest.mark.parametrize("message", [
        "BU ALICI ZATEN KAYITLI",
        "Bu alıcı ZATEN KAYITLI!",
        "bu alici zaten kayitli",
    ])
    def test_already_registered_any_case(self, message: str) -> None:
        """Upper-case Turkish uses I for the dotless i; it still signals a duplicate."""
        with pytest.raises(CustomerAlreadyRegistered):
            translate_create_response({"error": message})

    def test_other_business_error(self) -> None:
        with pytest.raises(CreateFailed) as exc_info:
            translate_create_response({"ErrorMessage": "Vergi dairesi hatalı"})
        assert not isinstance(exc_info.value, CustomerAlreadyRegistered)
        assert str(exc_info.value) == "customer create error: Vergi dairesi hatalı"

    def test_missing_id(self) -> None:
        with pytest.raises(IdMissing):
            translate_create_response({"success": True})

    def test_non_numeric_id(self) -> None:
        with pytest.raises(IdMissing):
            translate_create_response({"IdAlici": "12345"})

    def test_not_an_object(self) -> None:
        with pytest.raises(PortalDecodeError):
            translate_create_response(["IdAlici", 1])


# =============================================================================
# Customer create
# =============================================================================

class TestCreateCustomer:

    def test_refreshes_token_then_posts_defaults(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH, "create-tok")
        http.add("POST", RECIPIENT_CREATE_PATH, FakeResponse(200, json_data={"IdAlici": 777}))

        assert client.create_customer(_customer()) == "777"

        assert [c["path"] for c in http.calls] == [CREATE_QUICK_PAGE_PATH, RECIPIENT_CREATE_PATH]
        form = http.last_post()["data"]
        assert form[TOKEN_FIELD] == "create-tok"
        assert form["IdVergiDairesi"] == "-1"
        assert form["BinaNo"] == "1"
        assert form["AliciTipi"] == "1"
        assert form["FaturaGonderimSekli"] == "1"
        assert form["IdFirma"] == "999"
        assert form["AliciAdi"] == "Acme Ltd"

    def test_explicit_values_win_over_defaults(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH)
        http.add("POST", RECIPIENT_CREATE_PATH, FakeResponse(200, json_data={"IdAlici": 1}))
        client.create_customer(_customer(tax_office_id="42", building_no="7", sending_type=SendingType.PAPER))

        form = http.last_post()["data"]
        assert form["IdVergiDairesi"] == "42"
        assert form["BinaNo"] == "7"
        assert form["FaturaGonderimSekli"] == "2"

    @pytest.mark.parametrize("overrides", [
        {"name": ""},
        {"tax_number": ""},
        {"email": "", "sending_type": SendingType.ELECTRONIC},
    ])
    def test_validation_before_network(self, client: NetteFaturaClient, http: FakeHTTP, overrides) -> None:
        with pytest.raises(CustomerValidationError):
            client.create_customer(_customer(**overrides))
        assert http.calls == []

    def test_paper_sending_does_not_need_email(self) -> None:
        NetteFaturaClient.validate_customer(_customer(email="", sending_type=SendingType.PAPER))

    def test_unset_sending_type_does_not_need_email(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        """The electronic default is applied after validation."""
        http.add_token_page(CREATE_QUICK_PAGE_PATH)
        http.add("POST", RECIPIENT_CREATE_PATH, FakeResponse(200, json_data={"IdAlici": 5}))

        assert client.create_customer(_customer(email="")) == "5"
        assert http.last_post()["data"]["FaturaGonderimSekli"] == "1"

    def test_duplicate_is_tagged(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH)
        http.add("POST", RECIPIENT_CREATE_PATH, FakeResponse(200, json_data={"error": "Alıcı zaten kayıtlı"}))
        with pytest.raises(CustomerAlreadyRegistered):
            client.create_customer(_customer())

    def test_non_json_body(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH)
        http.add("POST", RECIPIENT_CREATE_PATH, FakeResponse(200, "<html>Hata</html>"))
        with pytest.raises(PortalDecodeError, match="customer create"):
            client.create_customer(_customer())


# =============================================================================
# Customer list
# =============================================================================

class TestListCustomers:

    def test_table_query_form(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(RECIPIENT_LIST_PAGE_PATH)
        http.add("POST", RECIPIENT_LIST_PATH, FakeResponse(200, json_data={
            "draw": 1, "recordsTotal": 0, "recordsFiltered": 0, "data": [],
        }))

        client.list_customers(500)
        client.list_customers()

        first, second = http.calls_to("POST", RECIPIENT_LIST_PATH)
        assert first["data"]["draw"] == "1"
        assert second["data"]["draw"] == "2"
        assert first["data"]["start"] == "0"
        assert first["data"]["length"] == "500"
        assert second["data"]["length"] == "200"
        assert first["data"]["IdFirma"] == "999"
        for i, column in enumerate(LIST_COLUMNS):
            assert first["data"][f"columns[{i}][data]"] == column
        assert "columns[6][data]" not in first["data"]

    def test_company_filter(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(RECIPIENT_LIST_PAGE_PATH)
        http.add("POST", RECIPIENT_LIST_PATH, FakeResponse(200, json_data={"data": []}))
        client.list_customers(company_filter="555")
        assert http.last_post()["data"]["IdFirma"] == "555"

    def test_envelope(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(RECIPIENT_LIST_PAGE_PATH)
        http.add("POST", RECIPIENT_LIST_PATH, FakeResponse(200, json_data={
            "draw": 3,
            "recordsTotal": 10,
            "recordsFiltered": 2,
            "data": [
                {"IdAlici": 11, "AliciAdi": "Acme Ltd", "IdIl": "28", "IdIlce": 413, "Durum": 1},
                {"IdAlici": 12.0, "AliciAdi": "Beta AŞ"},
            ],
        }))

        page = client.list_customers()

        assert (page.draw, page.records_total, page.records_filtered) == (3, 10, 2)
        assert [(c.id, c.name, c.position) for c in page.rows] == [("11", "Acme Ltd", 0), ("12", "Beta AŞ", 1)]
        assert page.rows[0].city_id == "28"
        assert page.rows[0].district_id == "413"
        assert page.rows[1].city_id == ""

    def test_http_error(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(RECIPIENT_LIST_PAGE_PATH)
        http.add("POST", RECIPIENT_LIST_PATH, FakeResponse(500, "boom"))
        with pytest.raises(PortalHTTPError) as exc_info:
            client.list_customers()
        assert exc_info.value.status_code == 500

    def test_envelope_without_data(self) -> None:
        with pytest.raises(PortalDecodeError):
            parse_recipient_page({"draw": 1})

    def test_envelope_with_invalid_counter(self) -> None:
        with pytest.raises(PortalDecodeError, match="counters"):
            parse_recipient_page({"draw": "abc", "data": []})


# =============================================================================
# Customer detail
# =============================================================================

class TestCustomerDetail:

    def test_scrapes_fields_by_id(self) -> None:
        detail = parse_recipient_detail(DETAIL_HTML)
        assert detail.name == "Acme Ltd"
        assert detail.tax_number == "1234567890"
        assert detail.email == "info@acme.test"
        assert detail.address == "Atatürk Cad. No 5"
        assert detail.postal_code == "28100"
        assert detail.city_id == "28"

    def test_missing_fields_are_empty(self) -> None:
        detail = parse_recipient_detail(DETAIL_HTML)
        assert detail.phone == ""
        assert detail.building_no == ""
        assert detail.district_id == ""

    def test_empty_page(self) -> None:
        detail = parse_recipient_detail("")
        assert detail.name == ""
        assert detail.city_id == ""

    def test_get_detail(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add("GET", "/Recipient/Edit/11", FakeResponse(200, DETAIL_HTML))
        assert client.get_customer_detail("11").city_id == "28"

    def test_get_detail_http_error(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add("GET", "/Recipient/Edit/11", FakeResponse(404, "not found"))
        with pytest.raises(PortalHTTPError):
            client.get_customer_detail("11")


# =============================================================================
# Invoice create
# =============================================================================

class TestCreateInvoice:

    @staticmethod
    def _invoice(customer_id: str = "777") -> Invoice:
        return Invoice(customer_id=customer_id, products=[Product(name="Danışmanlık", quantity=2, price=50.0, vat_rate=20)])

    def test_returns_invoice_number(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH, "inv-tok")
        http.add("POST", INVOICE_CREATE_PATH, FakeResponse(200, '"NTF2026000000123"'))

        assert client.create_invoice(self._invoice()) == "NTF2026000000123"

        form = http.last_post(INVOICE_CREATE_PATH)["data"]
        assert form[TOKEN_FIELD] == "inv-tok"
        payload = json.loads(form["jsonData"])
        assert payload["IdAlici"] == "777"
        assert payload["CompanyId"] == "999"
        assert payload["Products"][0]["ProductName"] == "Danışmanlık"

    def test_error_body(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH)
        http.add("POST", INVOICE_CREATE_PATH, FakeResponse(200, '{"error": "Hata"}'))
        with pytest.raises(InvoiceCreateFailed):
            client.create_invoice(self._invoice())

    def test_empty_body(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH)
        http.add("POST", INVOICE_CREATE_PATH, FakeResponse(200, ""))
        with pytest.raises(InvoiceCreateFailed):
            client.create_invoice(self._invoice())

    def test_customer_id_required(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        with pytest.raises(InvoiceCreateFailed):
            client.create_invoice(self._invoice(customer_id=""))
        assert http.calls == []

    def test_raw(self, client: NetteFaturaClient, http: FakeHTTP) -> None:
        http.add_token_page(CREATE_QUICK_PAGE_PATH)
        http.add("POST", INVOICE_CREATE_PATH, FakeResponse(200, '"X1"'))
        assert client.create_invoice_raw(self._invoice()) == b'"X1"'


# =============================================================================
# Per-client serialization
# =============================================================================

class TestSerialization:
    """Token refresh and submit of one call never interleave with another call."""

    def test_list_waits_for_create_submit(self, portal_config: PortalConfig) -> None:
        http = BlockingHTTP(RECIPIENT_CREATE_PATH)
        http.add_token_page(CREATE_QUICK_PAGE_PATH, "create-tok")
        http.add_token_page(RECIPIENT_LIST_PAGE_PATH, "list-tok")
        http.add("POST", RECIPIENT_CREATE_PATH, FakeResponse(200, json_data={"IdAlici": 1}))
        http.add("POST", RECIPIENT_LIST_PATH, FakeResponse(200, json_data={"data": []}))
        client = NetteFaturaClient(portal_config, session=http)

        results = {}
        errors = []

        def run(name, fn):
            try:
                results[name] = fn()
            except Exception as exc:  # surfaced by the assertions below
                errors.append(exc)

        creator = threading.Thread(target=run, args=("create", lambda: client.create_customer(_customer())))
        lister = threading.Thread(target=run, args=("list", lambda: client.list_customers()))

        creator.start()
        assert http.entered.wait(5)
        lister.start()
        time.sleep(0.2)

        # The create POST is in flight: the list call must not have refreshed its token yet.
        assert [(c["method"], c["path"]) for c in http.calls] == [("GET", CREATE_QUICK_PAGE_PATH)]

        http.release.set()
        creator.join(5)
        lister.join(5)

        assert errors == []
        assert results["create"] == "1"
        assert [(c["method"], c["path"]) for c in http.calls] == [
            ("GET", CREATE_QUICK_PAGE_PATH),
            ("POST", RECIPIENT_CREATE_PATH),
            ("GET", RECIPIENT_LIST_PAGE_PATH),
            ("POST", RECIPIENT_LIST_PATH),
        ]
        assert http.last_post(RECIPIENT_CREATE_PATH)["data"][TOKEN_FIELD] == "create-tok"
        assert http.last_post(RECIPIENT_LIST_PATH)["data"][TOKEN_FIELD] == "list-tok"
