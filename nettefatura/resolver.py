"""
Resolução idempotente de clientes no portal NetteFatura.

O "create" do portal não é idempotente e só sinaliza duplicação por texto
livre (traduzido para CustomerAlreadyRegistered pelo cliente HTTP). Quando
isso acontece:

1) lista até 500 clientes e filtra por nome exato (case-fold + trim);
2) 0 candidatos -> CustomerNotFoundAfterConflict;
3) 1 candidato  -> devolve o seu id sem pedir detalhe;
4) N candidatos -> pede o detalhe de cada um, pontua e escolhe o melhor.

Pontuação com detalhe:  0.5*sim(morada) + 0.3*[il igual] + 0.2*[ilçe igual]
Pontuação sem detalhe:  0.3*[il igual] + 0.2*[ilçe igual]   (máx. 0.5)

Empates: ganha o candidato que aparece primeiro na listagem.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence

from nettefatura.exceptions import (
    CustomerAlreadyRegistered,
    CustomerNotFoundAfterConflict,
    NetteFaturaError,
)
from nettefatura.models import (
    Candidate,
    CandidateDetail,
    Customer,
    Invoice,
    Product,
    RecipientPage,
    ScoredCandidate,
)
from nettefatura.portal_client import NetteFaturaClient
from nettefatura.similarity import fold_case, similarity


LOGGER = logging.getLogger(__name__)

CONFLICT_LIST_LIMIT = 500

ADDRESS_WEIGHT = 0.5
CITY_WEIGHT = 0.3
DISTRICT_WEIGHT = 0.2


class CustomerPortal(Protocol):
    """Operações do portal de que o resolver precisa (NetteFaturaClient implementa)."""

    def create_customer(self, customer: Customer) -> str: ...

    def list_customers(self, limit: int = ..., company_filter: Optional[str] = ...) -> RecipientPage: ...

    def get_customer_detail(self, customer_id: str) -> CandidateDetail: ...


def normalize_name(name: str) -> str:
    return fold_case(name or "")


class CandidateRanker:
    def __init__(self, portal: CustomerPortal) -> None:
        self.portal = portal

    @staticmethod
    def score_with_detail(detail: CandidateDetail, customer: Customer) -> float:
        score = ADDRESS_WEIGHT * similarity(detail.address, customer.address)
        if detail.city_id == customer.city_id:
            score += CITY_WEIGHT
        if detail.district_id == customer.district_id:
            score += DISTRICT_WEIGHT
        return score

    @staticmethod
    def score_without_detail(candidate: Candidate, customer: Customer) -> float:
        score = 0.0
        if candidate.city_id == customer.city_id:
            score += CITY_WEIGHT
        if candidate.district_id == customer.district_id:
            score += DISTRICT_WEIGHT
        return score

    def score(self, candidate: Candidate, customer: Customer) -> ScoredCandidate:
        try:
            detail = self.portal.get_customer_detail(candidate.id)
        except NetteFaturaError as exc:
            LOGGER.warning("Detail fetch failed for candidate id=%s (%s); scoring by locality only", candidate.id, exc)
            return ScoredCandidate(candidate=candidate, score=self.score_without_detail(candidate, customer))
        return ScoredCandidate(candidate=candidate, score=self.score_with_detail(detail, customer), detail=detail)

    def rank(self, candidates: Sequence[Candidate], customer: Customer) -> List[ScoredCandidate]:
        """Pontua todos os candidatos; ordena por score desc, depois posição na listagem."""
        scored = [self.score(c, customer) for c in candidates]
        for s in scored:
            LOGGER.debug("Candidate id=%s position=%s score=%.4f", s.candidate.id, s.candidate.position, s.score)
        return sorted(scored, key=lambda s: (-s.score, s.candidate.position))

    def best(self, candidates: Sequence[Candidate], customer: Customer) -> ScoredCandidate:
        ranked = self.rank(candidates, customer)
        if not ranked:
            raise ValueError("no candidates to rank")
        return ranked[0]


class ConflictResolver:
    def __init__(self, portal: CustomerPortal, ranker: Optional[CandidateRanker] = None) -> None:
        self.portal = portal
        self.ranker = ranker or CandidateRanker(portal)

    def find_candidates(self, customer: Customer) -> List[Candidate]:
        page = self.portal.list_customers(CONFLICT_LIST_LIMIT)
        wanted = normalize_name(customer.name)
        return [c for c in page.rows if normalize_name(c.name) == wanted]

    def resolve(self, customer: Customer) -> str:
        """Devolve o id remoto do cliente, criando-o se ainda não existir."""
        try:
            return self.portal.create_customer(customer)
        except CustomerAlreadyRegistered as exc:
            LOGGER.info("Customer %r already registered (%s); resolving via listing", customer.name, exc.message)

        candidates = self.find_candidates(customer)
        if not candidates:
            raise CustomerNotFoundAfterConflict(
                f"customer {customer.name!r} reported as already registered but not found in listing"
            )
        if len(candidates) == 1:
            LOGGER.info("Single candidate for %r: id=%s", customer.name, candidates[0].id)
            return candidates[0].id

        best = self.ranker.best(candidates, customer)
        LOGGER.info(
            "Resolved %r among %s candidates: id=%s score=%.4f",
            customer.name, len(candidates), best.candidate.id, best.score,
        )
        return best.candidate.id


def create_invoice_with_customer(client: NetteFaturaClient, customer: Customer, products: Sequence[Product]) -> str:
    """Resolve (ou cria) o cliente e emite a fatura. Devolve o número da fatura."""
    resolver = ConflictResolver(client)
    customer_id = resolver.resolve(customer)
    return client.create_invoice(Invoice(customer_id=customer_id, products=list(products)))
