"""
Sessão HTTP e protocolo de token anti-forgery do portal NetteFatura.

O portal emite um __RequestVerificationToken novo por cada página renderizada
e pode rejeitar tokens antigos. Cada chamada mutante deve, com o lock da
sessão adquirido, renovar o token na página que renderiza o seu formulário e
submeter logo a seguir.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Any, Dict, Optional

import requests

from nettefatura.exceptions import LoginFailed, PortalTransportError, TokenNotFound


LOGGER = logging.getLogger(__name__)

TOKEN_FIELD = "__RequestVerificationToken"
TOKEN_RE = re.compile(r'name="__RequestVerificationToken".*?value="([^"]+)"', re.DOTALL)

LOGIN_PAGE_PATH = "/account/login"
LOGIN_PATH = "/Account/Login"
LOGIN_OK_STATUSES = (200, 301, 302, 303, 307, 308)

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "X-Requested-With": "XMLHttpRequest",
}


def extract_token(body: str) -> Optional[str]:
    m = TOKEN_RE.search(body or "")
    return m.group(1) if m else None


class PortalSession:
    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session if session is not None else requests.Session()
        self.token: Optional[str] = None
        # Serializa "refresh + submit" entre threads que partilham o cliente.
        self.lock = threading.RLock()

    def url(self, path: str) -> str:
        return self.base_url + path

    def get(self, path: str, *, operation: str, **kwargs: Any) -> requests.Response:
        try:
            return self.http.get(self.url(path), timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise PortalTransportError(f"{operation}: GET {path} failed: {exc}") from exc

    def post_form(
        self,
        path: str,
        form: Dict[str, Any],
        *,
        operation: str,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        data = dict(form)
        data[TOKEN_FIELD] = self.token or ""
        try:
            return self.http.post(
                self.url(path),
                data=data,
                headers=headers if headers is not None else FORM_HEADERS,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise PortalTransportError(f"{operation}: POST {path} failed: {exc}") from exc

    def refresh_token(self, path: str) -> str:
        """Lê a página `path` e guarda o token anti-forgery (substitui o anterior)."""
        r = self.get(path, operation="token refresh")
        token = extract_token(r.text)
        if not token:
            raise TokenNotFound(f"token not found on page {path} (HTTP {r.status_code})")
        self.token = token
        LOGGER.debug("Anti-forgery token refreshed from %s", path)
        return token

    def login(self, vkn_tckn: str, password: str) -> None:
        with self.lock:
            self.refresh_token(LOGIN_PAGE_PATH)
            form = {
                "VknTckn": vkn_tckn,
                "Password": password,
                "RememberMe": "on",
            }
            # Redirect é sucesso: não seguir para ver o status original.
            r = self.post_form(LOGIN_PATH, form, operation="login", headers={}, allow_redirects=False)
        if r.status_code not in LOGIN_OK_STATUSES:
            raise LoginFailed(r.status_code, r.text)
        LOGGER.info("Login OK (HTTP %s)", r.status_code)
