from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from .alternatives import (
    DEFAULT_ALTERNATIVES_CAP,
    alternative_key,
    alternatives_from_proposals,
    cap_alternatives,
    inject_alternative,
)
from .conflict_detector import conflict_type_for, proposal_order
from .errors import OracleUnavailable, UnknownConflict
from .ledger import EditLedger
from .models import Alternative, ConflictGroup, ConflictInfo, Edit, ElementDescriptor, Proposal

logger = logging.getLogger("tweaqengine.conflicts")

FALLBACK_REASON = "fallback: oracle unavailable"
AGREEMENT_REASON = "all proposals agree"


@dataclass(slots=True)
class ConflictContext:
    conflict_id: str
    property: str
    element: ElementDescriptor | None
    current_value: Any
    proposals: list[Proposal]


@dataclass(slots=True)
class OracleDecision:
    chosen_value: Any
    rationale: str = ""
    alternatives: list[Alternative] = field(default_factory=list)


class ResolutionOracle(Protocol):
    async def resolve_conflict(self, context: ConflictContext) -> OracleDecision: ...


class StaticOracle:
    """Oracle backed by a plain function; raises OracleUnavailable when it has none."""

    def __init__(
        self,
        choose: Callable[[ConflictContext], OracleDecision] | None = None,
        *,
        delay_sec: float = 0.0,
    ) -> None:
        self.choose = choose
        self.delay_sec = delay_sec
        self.calls: list[ConflictContext] = []

    async def resolve_conflict(self, context: ConflictContext) -> OracleDecision:
        self.calls.append(context)
        if self.delay_sec:
            await asyncio.sleep(self.delay_sec)
        if self.choose is None:
            raise OracleUnavailable("No decision function configured.")
        return self.choose(context)


@dataclass(slots=True)
class SupersededResolution:
    conflict_id: str
    group: ConflictGroup
    reason: str = "proposal set changed while the oracle was deciding"


def new_conflict_id() -> str:
    return f"conflict-{uuid.uuid4().hex[:12]}"


class ConflictResolver:
    def __init__(
        self,
        oracle: ResolutionOracle | None,
        ledger: EditLedger,
        *,
        alternatives_cap: int = DEFAULT_ALTERNATIVES_CAP,
        timeout_sec: float = 20.0,
    ) -> None:
        self.oracle = oracle
        self.ledger = ledger
        self.alternatives_cap = alternatives_cap
        self.timeout_sec = timeout_sec

    def new_conflict(self, group: ConflictGroup) -> ConflictInfo:
        return ConflictInfo(
            id=new_conflict_id(),
            conflict_type=conflict_type_for(group.property),
            property=group.property,
            proposals=sorted(group.proposals, key=proposal_order),
        )

    async def resolve(
        self,
        group: ConflictGroup,
        *,
        current_value: Any = None,
        still_current: Callable[[ConflictGroup], bool] | None = None,
    ) -> ConflictInfo | SupersededResolution:
        info = self.new_conflict(group)
        distinct = {alternative_key(proposal.suggested_value) for proposal in info.proposals}

        if len(distinct) == 1:
            first = info.proposals[0]
            info.chosen_value = first.suggested_value
            info.resolution_reason = AGREEMENT_REASON
            info.alternatives = cap_alternatives(alternatives_from_proposals(info.proposals), self.alternatives_cap)
        elif self.oracle is None:
            self._apply_fallback(info, "no oracle configured")
        else:
            context = ConflictContext(
                conflict_id=info.id,
                property=info.property,
                element=group.descriptor,
                current_value=current_value,
                proposals=list(info.proposals),
            )
            try:
                decision = await asyncio.wait_for(self.oracle.resolve_conflict(context), timeout=self.timeout_sec)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Oracle failed for %s on %s: %s", info.id, info.property, exc)
                self._apply_fallback(info, str(exc) or type(exc).__name__)
            else:
                self._apply_decision(info, decision)

        info.state = "oracle-resolved"
        info.final_value = info.chosen_value

        if still_current is not None and not still_current(group):
            logger.info("Discarding late resolution %s: proposals changed", info.id)
            return SupersededResolution(conflict_id=info.id, group=group)
        return info

    def _apply_decision(self, info: ConflictInfo, decision: OracleDecision | None) -> None:
        if decision is None or decision.chosen_value is None:
            self._apply_fallback(info, "oracle returned no value")
            return
        info.chosen_value = decision.chosen_value
        info.resolution_reason = decision.rationale or "chosen by oracle"
        info.alternatives = cap_alternatives(decision.alternatives or [], self.alternatives_cap)

    def _apply_fallback(self, info: ConflictInfo, detail: str) -> None:
        first = info.proposals[0]
        info.chosen_value = first.suggested_value
        info.resolution_reason = FALLBACK_REASON
        info.alternatives = cap_alternatives(alternatives_from_proposals(info.proposals), self.alternatives_cap)
        logger.info("Conflict %s fell back to %s from %s (%s)", info.id, first.suggested_value, first.source_ref, detail)

    # review / override ------------------------------------------------------------

    def find(self, conflict_id: str) -> tuple[Edit, ConflictInfo]:
        for edit in self.ledger.list():
            if edit.conflict is not None and edit.conflict.id == conflict_id:
                return edit, edit.conflict
        raise UnknownConflict(conflict_id)

    def apply_override(self, conflict_id: str, value: Any, source: str = "user") -> ConflictInfo:
        edit, conflict = self.find(conflict_id)
        self.ledger.guard.ensure_idle(edit.id)
        conflict.final_value = value
        conflict.user_reviewed = True
        conflict.state = "user-overridden"
        conflict.override_source = source
        conflict.alternatives = inject_alternative(
            conflict.alternatives,
            Alternative(value=conflict.chosen_value, source_ref=None, rationale=conflict.resolution_reason),
            self.alternatives_cap,
        )
        self.ledger.amend(edit.id, conflict.property, value, source_ref=source)
        logger.info("Conflict %s overridden with %r by %s", conflict_id, value, source)
        return conflict
