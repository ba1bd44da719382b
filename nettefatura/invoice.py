"""
Montagem do payload de fatura e aritmética de IVA (KDV).

Contrato canónico: JSON do ecrã /Invoice/CreateQuick com InvoiceDate em
DD-MM-YYYY. A variante EARSIVFATURA com datas DD.MM.YYYY está obsoleta e
não é suportada.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

from nettefatura.models import Invoice, Product


INVOICE_DATE_FORMAT = "%d-%m-%Y"
INVOICE_TIME_FORMAT = "%H:%M:%S"
INVOICE_TYPE_SALE = "1"  # Satış faturası


def price_without_vat(price_with_vat: float, vat_rate: int) -> float:
    return price_with_vat / (1 + vat_rate / 100)


def price_with_vat(price_without_vat: float, vat_rate: int) -> float:
    return price_without_vat * (1 + vat_rate / 100)


def vat_amount(price_without_vat: float, vat_rate: int) -> float:
    return price_without_vat * vat_rate / 100


def _product_line(product: Product, measure_unit: int) -> Dict[str, Any]:
    line_total = product.price * product.quantity
    return {
        "ProductInvoiceModelId": 0,
        "DiscountAmount": 0,
        "DiscountRate": 0,
        "LineExtensionAmount": line_total,
        "MeasureUnitId": measure_unit,
        "ProductId": None,
        "ProductName": product.name,
        "Quantity": product.quantity,
        "UnitPrice": product.price,
        "VatAmount": vat_amount(line_total, product.vat_rate),
        "VatRate": product.vat_rate,
        "AdditionalTaxes": [],
        "WitholdingTaxes": [],
        "Deleted": False,
        "DeliveryList": [],
        "CustomsTrackingList": [],
        "TaxExemptionReason": "",
        "TaxExemptionReasonCode": "",
        "IdMensei": 0,
        "Mensei": None,
        "SiniflandirmaKodu": None,
        "IdSiniflandirmaKodu": 0,
        "GTipNoArcvh": "",
    }


def build_invoice_payload(
    invoice: Invoice,
    *,
    company_id: str,
    measure_unit: int,
    currency_code: str,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """Monta o jsonData de /Invoice/Create. Sem data na fatura usa `now`."""
    date = invoice.date or now or dt.datetime.now()

    products: List[Dict[str, Any]] = []
    total_line_extension = 0.0
    total_vat = 0.0
    for product in invoice.products:
        line = _product_line(product, measure_unit)
        total_line_extension += line["LineExtensionAmount"]
        total_vat += line["VatAmount"]
        products.append(line)

    total_amount = total_line_extension + total_vat
    notes = list(invoice.notes) or [""]

    return {
        "ETTN": "",
        "InvoiceId": "0",
        "RecipientType": "2",
        "InvoiceNumber": "",
        "CompanyId": company_id,
        "ScenarioType": "0",
        "ReceiverInboxTag": None,
        "InvoiceDate": date.strftime(INVOICE_DATE_FORMAT),
        "InvoiceTime": date.strftime(INVOICE_TIME_FORMAT),
        "InvoiceType": INVOICE_TYPE_SALE,
        "LastPaymentDate": "",
        "DispatchList": [],
        "IdAlici": invoice.customer_id,
        "Products": products,
        "CurrencyCode": currency_code,
        "CrossRate": 0,
        "TaxExemptionReason": "",
        "Notes": notes,
        "Receiver": {"SendingType": "1"},
        "IsFreeOfCharge": False,
        "KismiIadeMi": False,
        "CompanyBankAccountList": [],
        "TotalLineExtensionAmount": total_line_extension,
        "TotalVATAmount": total_vat,
        "TotalTaxInclusiveAmount": total_amount,
        "TotalDiscountAmount": 0,
        "TotalPayableAmount": total_amount,
        "RoundCounter": 0,
    }
