#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
NetteFatura App - Entry point principal.
Resolve clientes (cria ou encontra o existente) e emite faturas no portal NetteFatura.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from nettefatura.config import load_config
from nettefatura.exceptions import PortalConfigError
from nettefatura.logging_setup import configure_all
from orchestrator.runner import AppOrchestrator

logger = logging.getLogger(__name__)

EPILOG = """
Exemplos:
  python main.py --list-apps
  python main.py --portal-config config.ini --app nettefatura-customer-resolve --config config.json
  python main.py --portal-config config.ini --workflow workflow.json
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="NetteFatura App - clientes e faturas no portal NetteFatura",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument("--base-dir", type=Path, default=Path.cwd(),
                        help="Diretório base (work/ e logs/; default: diretório atual)")
    parser.add_argument("--portal-config", type=Path,
                        help="Ficheiro INI do portal (company_id, credenciais, locations_file)")
    parser.add_argument("--list-apps", action="store_true", help="Lista as mini apps e sai")

    target = parser.add_mutually_exclusive_group()
    target.add_argument("--app", help="Mini app a executar")
    target.add_argument("--workflow", type=Path, help="Workflow JSON (ex.: cliente + fatura)")

    parser.add_argument("--config", type=Path,
                        help="JSON com a config de cada app, indexada pelo nome da app")
    parser.add_argument("--verbose", action="store_true", help="Logging DEBUG (inclui pedidos HTTP)")
    return parser


def _read_json(path: Path, what: str) -> Optional[Dict[str, Any]]:
    if not path.exists():
        logger.error(f"Ficheiro de {what} não encontrado: {path}")
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Erro ao carregar {what} {path}: {e}")
        return None


def _print_apps(orchestrator: AppOrchestrator) -> None:
    print("\nMini Apps disponíveis:")
    for name, info in orchestrator.list_apps().items():
        deps = f" (depende de: {', '.join(info['dependencies'])})" if info["dependencies"] else ""
        print(f"  {name} v{info['version']}{deps}")
        print(f"      {info['description']}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    log_level = logging.DEBUG if args.verbose else logging.INFO

    portal_config = None
    if args.portal_config:
        try:
            portal_config = load_config(args.portal_config.resolve())
        except PortalConfigError as e:
            configure_all(level=log_level)
            logger.error(f"Configuração do portal inválida: {e}")
            return 1

    configure_all(log_file=portal_config.log_file if portal_config else None, level=log_level)
    orchestrator = AppOrchestrator(args.base_dir, portal_config=portal_config)

    if args.list_apps:
        _print_apps(orchestrator)
        return 0

    if args.workflow:
        workflow = _read_json(args.workflow, "workflow")
        if workflow is None:
            return 1
        results = orchestrator.run_workflow(workflow)
        for idx, result in enumerate(results, start=1):
            print(f"{'✓' if result.success else '✗'} [{idx}] {result.message}")
        failed = sum(1 for r in results if not r.success)
        print(f"\nWorkflow: {len(results) - failed}/{len(results)} apps bem-sucedidas")
        return 1 if failed else 0

    if args.app:
        config_data: Dict[str, Any] = {}
        if args.config:
            config_data = _read_json(args.config, "configuração")
            if config_data is None:
                return 1
        result = orchestrator.run_app(args.app, config_data.get(args.app, {}))
        print(f"{'✓' if result.success else '✗'} {result.message}")
        for f in result.output_files:
            print(f"  - {f}")
        return 0 if result.success else 1

    build_parser().print_help()
    return 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("Interrompido pelo utilizador.")
        sys.exit(130)
