"""
Mini app: Emite uma fatura NetteFatura para um cliente já resolvido.
"""

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Tuple

from nettefatura.base_app import AppResult, BaseApp
from nettefatura.context import AppContext
from nettefatura.exceptions import AppConfigError, NetteFaturaError
from nettefatura.invoice import price_without_vat
from nettefatura.models import Invoice, Product


logger = logging.getLogger(__name__)

CUSTOMER_RESOLVE_APP = "nettefatura-customer-resolve"


def product_from_dict(data: Dict[str, Any]) -> Product:
    vat_rate = int(data.get("vat_rate", 20))
    price = float(data["price"])
    if data.get("price_includes_vat"):
        price = price_without_vat(price, vat_rate)
    return Product(
        name=str(data["name"]),
        quantity=float(data.get("quantity", 1)),
        price=price,
        vat_rate=vat_rate,
    )


class NetteFaturaInvoiceCreateApp(BaseApp):
    """Mini app: Emite fatura no NetteFatura."""

    @property
    def name(self) -> str:
        return "nettefatura-invoice-create"

    @property
    def description(self) -> str:
        return "Emite uma fatura para o cliente resolvido (IdAlici)"

    @property
    def version(self) -> str:
        return "1.0.0"

    def get_dependencies(self, config: Optional[Dict[str, Any]] = None) -> List[str]:
        if config and config.get("customer_id"):
            return []
        return [CUSTOMER_RESOLVE_APP]

    def validate_config(self, config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """
        Config esperada:
        {
            "customer_id": "12345",  # opcional; sem ele usa o resultado de customer-resolve
            "products": [
                {"name": "Ürün", "quantity": 1, "price": 100.0, "vat_rate": 20,
                 "price_includes_vat": false}
            ],
            "notes": ["..."],  # opcional
            "date": "2026-10-19"  # opcional, ISO
        }
        """
        if not isinstance(config, dict):
            return False, "Config deve ser um dicionário"

        products = config.get("products")
        if not isinstance(products, list) or not products:
            return False, "Config deve conter 'products' com pelo menos um produto"
        for idx, p in enumerate(products, start=1):
            if not isinstance(p, dict) or "name" not in p or "price" not in p:
                return False, f"Produto #{idx} deve ter 'name' e 'price'"

        if "date" in config:
            try:
                dt.date.fromisoformat(str(config["date"]))
            except ValueError:
                return False, f"Data inválida: {config['date']}"

        return True, None

    def run(self, config: Dict[str, Any], context: AppContext) -> AppResult:
        customer_id = str(config.get("customer_id") or context.shared_data.get("customer_id") or "")
        if not customer_id:
            return AppResult.fail("Sem IdAlici: execute antes o customer-resolve ou indique 'customer_id'")

        try:
            products = [product_from_dict(p) for p in config["products"]]
        except (KeyError, TypeError, ValueError) as e:
            return AppResult.fail(f"Produto inválido: {e}")

        invoice_date = None
        if config.get("date"):
            d = dt.date.fromisoformat(str(config["date"]))
            invoice_date = dt.datetime.combine(d, dt.datetime.now().time())

        invoice = Invoice(
            customer_id=customer_id,
            products=products,
            date=invoice_date,
            notes=list(config.get("notes") or []),
        )

        try:
            invoice_no = context.get_client().create_invoice(invoice)
        except (NetteFaturaError, AppConfigError) as e:
            return AppResult.fail(f"Fatura não emitida: {e}")

        context.shared_data["invoice_number"] = invoice_no
        return AppResult(
            success=True,
            message=f"Fatura emitida: {invoice_no} (IdAlici={customer_id})",
            data={"invoice_number": invoice_no, "customer_id": customer_id},
        )
