"""Shared pytest fixtures: portal config, scripted HTTP session and client."""

from __future__ import annotations

import pytest

from nettefatura.config import PortalConfig
from nettefatura.locations import default_locations
from nettefatura.portal_client import NetteFaturaClient
from tests.fakes import BASE_URL, FakeHTTP


@pytest.fixture()
def portal_config() -> PortalConfig:
    return PortalConfig(company_id="999", base_url=BASE_URL + "/", vkn_tckn="11111111111", password="secret")


@pytest.fixture()
def http() -> FakeHTTP:
    return FakeHTTP()


@pytest.fixture()
def client(portal_config: PortalConfig, http: FakeHTTP) -> NetteFaturaClient:
    return NetteFaturaClient(portal_config, session=http)


@pytest.fixture(scope="session")
def locations():
    return default_locations()
