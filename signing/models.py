"""Contract models as returned by the contracts API (camelCase on the wire)."""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContractParty(CamelModel):
    id: str
    name: str
    email: str = ""
    phone: str = ""
    id_number: str = ""
    address: str = ""
    role: Literal["tenant", "hoster", "guarantor"]


class ContractTerms(CamelModel):
    rent_amount: float = 0
    deposit_amount: float = 0
    payment_frequency: Literal["monthly", "biweekly", "weekly"] = "monthly"
    payment_due_day: int = 1


class GuarantorSignature(CamelModel):
    signed: bool = False
    signed_at: Optional[datetime] = None
    signature: Optional[str] = None


class ContractSignatures(CamelModel):
    tenant_signed: bool = False
    tenant_signed_at: Optional[datetime] = None
    tenant_signature: Optional[str] = None
    hoster_signed: bool = False
    hoster_signed_at: Optional[datetime] = None
    hoster_signature: Optional[str] = None
    guarantors_signed: Dict[str, GuarantorSignature] = Field(default_factory=dict)


class Contract(CamelModel):
    id: str
    property_id: str = ""
    property_title: str = ""
    tenant: ContractParty
    hoster: ContractParty
    guarantors: List[ContractParty] = Field(default_factory=list)
    terms: ContractTerms = Field(default_factory=ContractTerms)
    signatures: ContractSignatures = Field(default_factory=ContractSignatures)
    status: Literal["draft", "pending_signatures", "active", "expired", "terminated", "cancelled"] = "pending_signatures"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode="after")
    def _guarantor_slots_match(self) -> "Contract":
        """The guarantor signature map must cover exactly the contract's guarantors."""
        ids = {g.id for g in self.guarantors}
        keys = set(self.signatures.guarantors_signed)
        missing = ids - keys
        if keys - ids:
            raise ValueError(f"Signature slots for unknown guarantors: {sorted(keys - ids)}")
        # Contracts created before any guarantor signed may omit the empty slots.
        for guarantor_id in missing:
            self.signatures.guarantors_signed[guarantor_id] = GuarantorSignature()
        return self


class CreateContractRequest(CamelModel):
    property_id: str
    tenant_id: str
    guarantor_ids: List[str] = Field(default_factory=list)
    template_id: Optional[str] = None
    start_date: datetime
    end_date: datetime
    terms: ContractTerms
