"""Multi-party signature tracking over a Contract.

Slots are named ``tenant``, ``hoster`` and ``guarantor-<id>``. Completion is
never stored; it is derived from the signature map on every call.

Guarantor entitlement is a case-insensitive email match between the viewer
and the guarantor record. That is a weak identity binding, kept as-is.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from graph.errors import SignatureNotAllowedError, SignatureSubmissionError, StepValidationError
from signing.models import Contract

logger = logging.getLogger(__name__)

GUARANTOR_PREFIX = "guarantor-"


@dataclass(frozen=True)
class Viewer:
    id: str
    email: str = ""


@dataclass(frozen=True)
class SignatureProgress:
    completed: int
    total: int
    percentage: int


def parse_slot(slot: str) -> Tuple[str, Optional[str]]:
    """'guarantor-g1' → ('guarantor', 'g1'); 'tenant' → ('tenant', None)."""
    if slot in ("tenant", "hoster"):
        return slot, None
    if slot.startswith(GUARANTOR_PREFIX) and len(slot) > len(GUARANTOR_PREFIX):
        return "guarantor", slot[len(GUARANTOR_PREFIX):]
    raise ValueError(f"Unknown signature slot: {slot}")


def guarantor_slot(guarantor_id: str) -> str:
    return f"{GUARANTOR_PREFIX}{guarantor_id}"


def all_slots(contract: Contract) -> List[str]:
    return ["tenant", "hoster"] + [guarantor_slot(g.id) for g in contract.guarantors]


def is_slot_signed(contract: Contract, slot: str) -> bool:
    role, guarantor_id = parse_slot(slot)
    signatures = contract.signatures
    if role == "tenant":
        return signatures.tenant_signed
    if role == "hoster":
        return signatures.hoster_signed
    entry = signatures.guarantors_signed.get(guarantor_id)
    return bool(entry and entry.signed)


def signature_progress(contract: Contract) -> SignatureProgress:
    total = 2 + len(contract.guarantors)
    completed = sum(1 for slot in all_slots(contract) if is_slot_signed(contract, slot))
    percentage = round(100 * completed / total)
    if percentage == 100 and completed < total:
        percentage = 99
    return SignatureProgress(completed=completed, total=total, percentage=percentage)


def is_fully_signed(contract: Contract) -> bool:
    progress = signature_progress(contract)
    return progress.completed == progress.total


def can_sign(contract: Contract, viewer: Viewer, role: str, guarantor_id: Optional[str] = None) -> bool:
    """Whether the viewer is entitled to sign in this role (signed or not)."""
    if role == "tenant":
        return contract.tenant.id == viewer.id
    if role == "hoster":
        return contract.hoster.id == viewer.id
    if role == "guarantor":
        email = (viewer.email or "").strip().lower()
        if not email:
            return False
        return any(
            g.email.strip().lower() == email and (guarantor_id is None or g.id == guarantor_id)
            for g in contract.guarantors
        )
    return False


def signable_slots(contract: Contract, viewer: Viewer) -> List[str]:
    """Unsigned slots the viewer may sign. Signed slots are read-only."""
    slots = []
    for slot in all_slots(contract):
        role, guarantor_id = parse_slot(slot)
        if can_sign(contract, viewer, role, guarantor_id) and not is_slot_signed(contract, slot):
            slots.append(slot)
    return slots


async def submit_signatures(
    contract: Contract,
    signatures: Dict[str, str],
    service,
    viewer: Viewer,
) -> Contract:
    """
    Send each signature in its own call, one after another, keeping the latest
    contract the server returns. A failure stops the batch. Signatures already
    sent stay committed and are reported on the raised error.
    """
    if not signatures:
        raise StepValidationError(["signatures"], "Please provide at least one signature before continuing.")

    allowed = set(signable_slots(contract, viewer))
    for slot in signatures:
        if slot not in allowed:
            raise SignatureNotAllowedError(f"You cannot sign the {slot} slot of this contract")

    latest = contract
    signed: List[str] = []
    for slot, image in signatures.items():
        role, guarantor_id = parse_slot(slot)
        try:
            latest = await service.sign_contract(contract.id, role, guarantor_id, image)
        except Exception as e:
            logger.error(f"Signing {slot} on contract {contract.id} failed after {signed}: {e}")
            raise SignatureSubmissionError(
                str(e) or "The signatures could not be recorded. Please try again.",
                contract=latest,
                signed_slots=signed,
            ) from e
        signed.append(slot)
        logger.info(f"Contract {contract.id}: {slot} signed")
    return latest
