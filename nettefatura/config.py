"""
Configuração do cliente NetteFatura (ficheiro INI + variáveis de ambiente).

Exemplo:

    [nettefatura]
    base_url = https://nettefatura.isnet.net.tr
    company_id = 12345
    measure_unit = 67
    currency_code = TRY
    timeout_sec = 30

    [credentials]
    vkn_tckn = 11111111111
    password = ...

    [paths]
    base_dir = .
    locations_file =

    [logging]
    log_file = logs/nettefatura.log

NETTEFATURA_VKN, NETTEFATURA_PASSWORD e NETTEFATURA_COMPANY_ID sobrepõem o INI.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from nettefatura.exceptions import PortalConfigError


DEFAULT_BASE_URL = "https://nettefatura.isnet.net.tr"
DEFAULT_MEASURE_UNIT = 67  # Adet
DEFAULT_CURRENCY_CODE = "TRY"
DEFAULT_TIMEOUT_SEC = 30


@dataclass
class PortalConfig:
    company_id: str
    base_url: str = DEFAULT_BASE_URL
    measure_unit: int = DEFAULT_MEASURE_UNIT
    currency_code: str = DEFAULT_CURRENCY_CODE
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    vkn_tckn: str = ""
    password: str = ""
    base_dir: Path = Path(".")
    locations_file: Optional[Path] = None
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        if not self.company_id:
            raise PortalConfigError("company ID is required")
        self.base_url = self.base_url.rstrip("/")


def load_config(path: Path) -> PortalConfig:
    if not path.exists():
        raise PortalConfigError(f"INI not found: {path}")
    cp = configparser.ConfigParser()
    cp.read(path, encoding="utf-8")

    if "nettefatura" not in cp:
        raise PortalConfigError("INI missing [nettefatura] section")

    base_dir = Path(cp.get("paths", "base_dir", fallback=".")).expanduser()
    if not base_dir.is_absolute():
        base_dir = (path.parent / base_dir).resolve()

    company_id = os.getenv("NETTEFATURA_COMPANY_ID") or cp.get("nettefatura", "company_id", fallback="").strip()
    base_url = cp.get("nettefatura", "base_url", fallback=DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL
    currency_code = cp.get("nettefatura", "currency_code", fallback=DEFAULT_CURRENCY_CODE).strip() or DEFAULT_CURRENCY_CODE
    try:
        measure_unit = cp.getint("nettefatura", "measure_unit", fallback=DEFAULT_MEASURE_UNIT)
        timeout_sec = cp.getfloat("nettefatura", "timeout_sec", fallback=float(DEFAULT_TIMEOUT_SEC))
    except ValueError as exc:
        raise PortalConfigError(f"INI [nettefatura] has an invalid number: {exc}") from exc

    vkn_tckn = os.getenv("NETTEFATURA_VKN") or cp.get("credentials", "vkn_tckn", fallback="").strip()
    password = os.getenv("NETTEFATURA_PASSWORD") or cp.get("credentials", "password", fallback="")

    locations_cfg = cp.get("paths", "locations_file", fallback="").strip()
    locations_file: Optional[Path] = None
    if locations_cfg:
        locations_file = Path(locations_cfg).expanduser()
        if not locations_file.is_absolute():
            locations_file = (base_dir / locations_file).resolve()

    # Ficheiro de log opcional (relativo a base_dir)
    log_file_cfg = cp.get("logging", "log_file", fallback="").strip() if "logging" in cp else ""
    log_file: Optional[Path] = None
    if log_file_cfg:
        log_file = Path(log_file_cfg).expanduser()
        if not log_file.is_absolute():
            log_file = (base_dir / log_file).resolve()

    return PortalConfig(
        company_id=company_id,
        base_url=base_url,
        measure_unit=measure_unit,
        currency_code=currency_code,
        timeout_sec=timeout_sec,
        vkn_tckn=vkn_tckn,
        password=password,
        base_dir=base_dir,
        locations_file=locations_file,
        log_file=log_file,
    )
