"""
Mini app: Resolve (cria ou encontra) clientes no portal NetteFatura.

Modo simples: um cliente em config["customer"]; o id fica em
context.shared_data["customer_id"] para as apps seguintes.

Modo lote: config["input_excel"] com 1 cliente por linha; o resultado
(IdAlici ou erro por linha) é escrito num Excel de saída.
"""

import datetime as dt
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from nettefatura.base_app import AppResult, BaseApp
from nettefatura.context import AppContext
from nettefatura.exceptions import AppConfigError, AppValidationError, NetteFaturaError
from nettefatura.locations import NOT_FOUND, NOT_FOUND_ID, LocationIndex
from nettefatura.models import Customer, CustomerType, SendingType
from nettefatura.resolver import ConflictResolver


logger = logging.getLogger(__name__)

# Colunas do Excel de saída (a ordem faz parte do contrato)
OUTPUT_COLUMNS = [
    "Alici Adi",
    "VKN/TCKN",
    "IdAlici",
    "Erro",
    "last_updated",
]

# Cabeçalhos aceites no Excel de entrada -> campo de Customer
INPUT_HEADERS = {
    "name": "name",
    "alici adi": "name",
    "tax_number": "tax_number",
    "vkn/tckn": "tax_number",
    "email": "email",
    "phone": "phone",
    "telefon": "phone",
    "address": "address",
    "sokak adi": "address",
    "city": "city",
    "il": "city",
    "district": "district",
    "ilce": "district",
    "city_id": "city_id",
    "district_id": "district_id",
    "postal_code": "postal_code",
    "posta kodu": "postal_code",
    "building_no": "building_no",
    "bina no": "building_no",
    "tax_office_id": "tax_office_id",
    "customer_type": "customer_type",
    "sending_type": "sending_type",
}


def now_local_iso() -> str:
    return dt.datetime.now().replace(microsecond=0).isoformat(sep=" ")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def customer_from_dict(data: Dict[str, Any], locations: LocationIndex) -> Customer:
    """Constrói um Customer; nomes de il/ilçe são convertidos em ids pelo lookup."""
    city_id = _text(data.get("city_id"))
    city_name = _text(data.get("city_name") or data.get("city"))
    district_id = _text(data.get("district_id"))

    if not city_id and city_name:
        found = locations.city_id(city_name)
        if found == NOT_FOUND:
            logger.warning(f"Il desconhecido: {city_name!r}")
        else:
            city_id = found
    if city_id and not city_name:
        name = locations.city_name(city_id)
        city_name = "" if name == NOT_FOUND else name

    district = _text(data.get("district"))
    if not district_id and district and city_id:
        found_district = locations.district_id(city_id, district)
        if found_district == NOT_FOUND_ID:
            logger.warning(f"Ilçe desconhecido: {district!r} (il={city_id})")
        else:
            district_id = str(found_district)

    customer_type = _text(data.get("customer_type"))
    sending_type = _text(data.get("sending_type"))
    try:
        return Customer(
            name=_text(data.get("name")),
            tax_number=_text(data.get("tax_number")),
            email=_text(data.get("email")),
            phone=_text(data.get("phone")),
            address=_text(data.get("address")),
            city_id=city_id,
            city_name=city_name,
            district_id=district_id,
            postal_code=_text(data.get("postal_code")),
            building_no=_text(data.get("building_no")),
            tax_office_id=_text(data.get("tax_office_id")),
            customer_type=CustomerType(int(customer_type)) if customer_type else None,
            sending_type=SendingType(int(sending_type)) if sending_type else None,
        )
    except ValueError as e:
        raise AppValidationError(f"customer_type/sending_type inválido: {e}") from e


def read_input_rows(path: Path) -> List[Dict[str, Any]]:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        rows = wb.active.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []
        keys = [INPUT_HEADERS.get(_text(h).lower()) for h in header]
        out: List[Dict[str, Any]] = []
        for values in rows:
            if not any(v not in (None, "") for v in values):
                continue
            out.append({k: v for k, v in zip(keys, values) if k})
        return out
    finally:
        wb.close()


def new_output_workbook() -> Tuple[Workbook, Worksheet]:
    wb = Workbook()
    ws = wb.active
    ws.title = "customers"
    for c, name in enumerate(OUTPUT_COLUMNS, start=1):
        ws.cell(row=1, column=c, value=name)
    ws.freeze_panes = "A2"
    return wb, ws


def append_result_row(ws: Worksheet, customer: Customer, customer_id: str, error: str) -> None:
    col = {name: (OUTPUT_COLUMNS.index(name) + 1) for name in OUTPUT_COLUMNS}
    r = ws.max_row + 1
    ws.cell(row=r, column=col["Alici Adi"], value=customer.name)
    ws.cell(row=r, column=col["VKN/TCKN"], value=customer.tax_number)
    ws.cell(row=r, column=col["IdAlici"], value=customer_id)
    ws.cell(row=r, column=col["Erro"], value=error)
    ws.cell(row=r, column=col["last_updated"], value=now_local_iso())


def safe_save_workbook(wb: Workbook, path: Path) -> None:
    """Grava num ficheiro temporário e substitui (seguro contra crash a meio)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    wb.save(tmp)
    os.replace(tmp, path)


class NetteFaturaCustomerResolveApp(BaseApp):
    """Mini app: Resolve clientes no NetteFatura (criação idempotente)."""

    @property
    def name(self) -> str:
        return "nettefatura-customer-resolve"

    @property
    def description(self) -> str:
        return "Cria clientes no NetteFatura ou encontra o existente quando o portal indica duplicado"

    @property
    def version(self) -> str:
        return "1.0.0"

    def validate_config(self, config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """
        Config esperada (um dos modos):
        {
            "customer": {"name": "...", "tax_number": "...", "email": "...",
                         "city": "İstanbul", "district": "Kadıköy", ...}
        }
        {
            "input_excel": "clientes.xlsx",
            "output_excel": "clientes_resolvidos.xlsx"  # opcional
        }
        """
        if not isinstance(config, dict):
            return False, "Config deve ser um dicionário"

        if "customer" in config:
            if not isinstance(config["customer"], dict):
                return False, "'customer' deve ser um dicionário"
            return True, None

        if "input_excel" in config:
            input_excel = Path(config["input_excel"])
            if not input_excel.exists():
                return False, f"Excel de entrada não encontrado: {input_excel}"
            return True, None

        return False, "Config deve conter 'customer' ou 'input_excel'"

    def run(self, config: Dict[str, Any], context: AppContext) -> AppResult:
        try:
            client = context.get_client()
            locations = context.get_locations()
        except (NetteFaturaError, AppConfigError) as e:
            return AppResult.fail(f"Erro ao preparar cliente NetteFatura: {e}")

        resolver = ConflictResolver(client)

        if "customer" in config:
            return self._run_single(config["customer"], resolver, locations, context)
        return self._run_batch(config, resolver, locations, context)

    def _run_single(
        self,
        data: Dict[str, Any],
        resolver: ConflictResolver,
        locations: LocationIndex,
        context: AppContext,
    ) -> AppResult:
        try:
            customer = customer_from_dict(data, locations)
            customer_id = resolver.resolve(customer)
        except (NetteFaturaError, AppValidationError) as e:
            return AppResult.fail(f"Cliente não resolvido: {e}")

        context.shared_data["customer_id"] = customer_id
        return AppResult(
            success=True,
            message=f"Cliente '{customer.name}' resolvido: IdAlici={customer_id}",
            data={"customer_id": customer_id},
        )

    def _run_batch(
        self,
        config: Dict[str, Any],
        resolver: ConflictResolver,
        locations: LocationIndex,
        context: AppContext,
    ) -> AppResult:
        input_excel = Path(config["input_excel"]).expanduser().resolve()
        output_cfg = config.get("output_excel")
        if output_cfg:
            output_excel = Path(output_cfg).expanduser().resolve()
        else:
            output_excel = context.get_or_create_workdir("customer_resolve") / f"{context.run_id}.xlsx"

        rows = read_input_rows(input_excel)
        logger.info(f"Clientes a resolver: {len(rows)} ({input_excel})")

        wb, ws = new_output_workbook()
        resolved = 0
        errors = 0
        last_id = None

        for idx, row in enumerate(rows, start=1):
            customer = None
            try:
                customer = customer_from_dict(row, locations)
                customer_id = resolver.resolve(customer)
            except (NetteFaturaError, AppValidationError) as e:
                errors += 1
                logger.warning(f"[{idx}/{len(rows)}] Falhou: {e}")
                if customer is None:
                    customer = Customer(name=_text(row.get("name")), tax_number=_text(row.get("tax_number")))
                append_result_row(ws, customer, "", str(e)[:500])
                continue

            resolved += 1
            last_id = customer_id
            append_result_row(ws, customer, customer_id, "")
            logger.info(f"[{idx}/{len(rows)}] OK {customer.name!r} -> IdAlici={customer_id}")

        safe_save_workbook(wb, output_excel)
        context.output_files[self.name] = output_excel
        if last_id is not None:
            context.shared_data["customer_id"] = last_id

        return AppResult(
            success=errors == 0,
            message=f"Resolvidos {resolved} clientes, {errors} erros. Excel guardado: {output_excel}",
            data={"resolved": resolved, "errors": errors, "total": len(rows)},
            output_files=[output_excel],
        )
