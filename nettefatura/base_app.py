"""
Classe base das mini apps NetteFatura.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from nettefatura.context import AppContext


@dataclass
class AppResult:
    """Resultado de uma mini app (ex.: IdAlici resolvido ou número da fatura)."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    output_files: List[Path] = field(default_factory=list)

    @classmethod
    def fail(cls, message: str) -> "AppResult":
        return cls(success=False, message=message)


class BaseApp(ABC):
    """Mini app executada pelo orquestrador com um AppContext partilhado."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Nome usado em --app e nos workflows (ex: 'nettefatura-customer-resolve')."""

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def version(self) -> str:
        ...

    @abstractmethod
    def validate_config(self, config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
        """Valida a config antes de qualquer chamada ao portal: (ok, erro)."""

    @abstractmethod
    def run(self, config: Dict[str, Any], context: AppContext) -> AppResult:
        """Executa a app; o cliente do portal e o lookup il/ilçe vêm do context."""

    def get_dependencies(self, config: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Apps a executar antes desta. A config permite dispensar uma dependência
        (ex.: customer_id já conhecido dispensa o customer-resolve).
        """
        return []
