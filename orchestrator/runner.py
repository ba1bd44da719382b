"""
Orquestrador das mini apps NetteFatura.

As apps partilham um AppContext: o cliente do portal (uma sessão com login) e
o lookup il/ilçe são criados uma vez e o IdAlici resolvido passa de uma app
para a seguinte em context.shared_data.
"""

import importlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import apps
from nettefatura.base_app import AppResult, BaseApp
from nettefatura.config import PortalConfig
from nettefatura.context import AppContext

logger = logging.getLogger(__name__)


def discover_apps() -> Dict[str, BaseApp]:
    """Instancia a primeira subclasse de BaseApp de cada apps/<pasta>/app.py."""
    found: Dict[str, BaseApp] = {}
    for app_dir in sorted(Path(apps.__file__).parent.iterdir()):
        if not (app_dir / "__init__.py").exists() or not (app_dir / "app.py").exists():
            continue

        module_name = f"apps.{app_dir.name}.app"
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.error(f"Erro ao carregar app {app_dir.name}: {e}", exc_info=True)
            continue

        app_class = next(
            (attr for attr in vars(module).values()
             if isinstance(attr, type) and issubclass(attr, BaseApp) and attr is not BaseApp),
            None,
        )
        if app_class is None:
            logger.warning(f"Nenhuma classe BaseApp encontrada em {module_name}")
            continue

        app = app_class()
        found[app.name] = app
        logger.info(f"Mini app carregada: {app.name} v{app.version}")
    return found


class AppOrchestrator:
    """Executa mini apps isoladas (com dependências) ou workflows."""

    def __init__(
        self,
        base_dir: Path,
        context: Optional[AppContext] = None,
        portal_config: Optional[PortalConfig] = None,
    ):
        """
        Args:
            base_dir: Diretório base (work/ e logs/ ficam aqui)
            context: Contexto partilhado (criado a partir de portal_config se None)
            portal_config: Configuração do portal (INI) usada pelo contexto criado
        """
        self.base_dir = Path(base_dir).resolve()
        self.context = context or AppContext(
            base_dir=self.base_dir,
            work_dir=self.base_dir / "work",
            log_dir=self.base_dir / "logs",
            portal_config=portal_config,
        )
        self.apps: Dict[str, BaseApp] = discover_apps()

    def list_apps(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                "description": app.description,
                "version": app.version,
                "dependencies": app.get_dependencies(),
            }
            for name, app in self.apps.items()
        }

    def run_app(self, app_name: str, config: Dict[str, Any], run_dependencies: bool = True) -> AppResult:
        """
        Valida a config, executa as dependências (config["dependencies"][nome])
        e depois a app. Erros inesperados viram um AppResult falhado.
        """
        app = self.apps.get(app_name)
        if app is None:
            return AppResult.fail(f"App '{app_name}' não encontrada. Apps disponíveis: {', '.join(self.apps)}")

        is_valid, error = app.validate_config(config)
        if not is_valid:
            return AppResult.fail(f"Config inválida para '{app_name}': {error}")

        if run_dependencies:
            for dep_name in app.get_dependencies(config):
                logger.info(f"Executando dependência '{dep_name}' para '{app_name}'...")
                dep_config = config.get("dependencies", {}).get(dep_name, {})
                dep_result = self.run_app(dep_name, dep_config)
                if not dep_result.success:
                    return AppResult.fail(f"Dependência '{dep_name}' falhou: {dep_result.message}")

        logger.info(f"Executando mini app: {app_name}")
        try:
            result = app.run(config, self.context)
        except Exception as e:
            logger.exception(f"Erro ao executar '{app_name}': {e}")
            return AppResult.fail(f"Erro inesperado: {e}")

        if result.success:
            logger.info(f"Mini app '{app_name}' executada com sucesso: {result.message}")
        else:
            logger.error(f"Mini app '{app_name}' falhou: {result.message}")
        return result

    def run_workflow(self, workflow_config: Dict[str, Any]) -> List[AppResult]:
        """
        Executa as apps pela ordem dada; as dependências já vêm listadas.

            {
                "name": "fatura_rapida",
                "continue_on_error": false,
                "apps": [
                    {"name": "nettefatura-customer-resolve", "config": {...}},
                    {"name": "nettefatura-invoice-create", "config": {...}}
                ]
            }
        """
        steps = workflow_config.get("apps", [])
        continue_on_error = workflow_config.get("continue_on_error", False)
        logger.info(f"Iniciando workflow: {workflow_config.get('name', 'unnamed')}")

        results: List[AppResult] = []
        for idx, step in enumerate(steps, start=1):
            app_name = step.get("name")
            if not app_name:
                logger.warning(f"App #{idx} sem nome, ignorando...")
                continue

            logger.info(f"[{idx}/{len(steps)}] Executando: {app_name}")
            result = self.run_app(app_name, step.get("config", {}), run_dependencies=False)
            results.append(result)
            if not result.success and not continue_on_error:
                logger.error(f"Workflow interrompido devido a falha em '{app_name}'")
                break

        ok = sum(1 for r in results if r.success)
        logger.info(f"Workflow concluído. {ok}/{len(results)} apps bem-sucedidas")
        return results
