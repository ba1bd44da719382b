"""
Contexto partilhado entre mini apps.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional
from datetime import datetime

from nettefatura.config import PortalConfig
from nettefatura.exceptions import AppConfigError
from nettefatura.locations import LocationIndex, default_locations, load_locations
from nettefatura.portal_client import NetteFaturaClient


@dataclass
class AppContext:
    """Contexto partilhado entre mini apps."""

    # Diretórios
    base_dir: Path
    work_dir: Path
    log_dir: Path

    # Configuração do portal (partilhada entre apps)
    portal_config: Optional[PortalConfig] = None

    # Metadados
    run_id: str = field(default_factory=lambda: datetime.now().strftime("%Y%m%d_%H%M%S"))
    start_time: datetime = field(default_factory=datetime.now)

    # Dados partilhados entre apps (ex.: "customer_id")
    shared_data: Dict[str, Any] = field(default_factory=dict)

    # Output files gerados pelas apps
    output_files: Dict[str, Path] = field(default_factory=dict)

    _client: Optional[NetteFaturaClient] = field(default=None, repr=False)
    _locations: Optional[LocationIndex] = field(default=None, repr=False)

    def get_client(self) -> NetteFaturaClient:
        """Cliente com sessão autenticada, criado na primeira utilização."""
        if self._client is None:
            if self.portal_config is None:
                raise AppConfigError("portal configuration not loaded (use --portal-config)")
            client = NetteFaturaClient(self.portal_config)
            if self.portal_config.vkn_tckn:
                client.login()
            self._client = client
        return self._client

    def set_client(self, client: NetteFaturaClient) -> None:
        self._client = client

    def get_locations(self) -> LocationIndex:
        if self._locations is None:
            locations_file = self.portal_config.locations_file if self.portal_config else None
            self._locations = load_locations(locations_file) if locations_file else default_locations()
        return self._locations

    def get_or_create_workdir(self, subdir: str) -> Path:
        """Cria subdiretório em work_dir se não existir."""
        path = self.work_dir / subdir
        path.mkdir(parents=True, exist_ok=True)
        return path
