from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from src.rule_engine.schemas.common import RESP_CODE_OK, RESP_MSG_OK


class PromBase(BaseModel):
    """Base fields for a Prometheus instance record."""

    url: str = Field("", description="Base URL of the Prometheus server (used for /-/reload).")


class PromCreate(PromBase):
    """Request body for registering a Prometheus instance."""


class PromUpdate(BaseModel):
    """Request body for updating a Prometheus instance (partial update)."""

    url: Optional[str] = Field(default=None, description="Base URL of the Prometheus server.")


class Prom(BaseModel):
    """A Prometheus instance that owns alerting rules.

    When produced by rule partitioning only ``id`` is known and ``url`` stays empty.
    """

    id: int = Field(..., description="Numeric Prometheus instance identifier.")
    url: str = Field("", description="Base URL of the Prometheus server (used for /-/reload).")


class PromsResp(BaseModel):
    """Envelope for listing Prometheus instances."""

    code: int = Field(RESP_CODE_OK, description="Response code; 0 means success.")
    msg: str = Field(RESP_MSG_OK, description="Response message.")
    data: List[Prom] = Field(default_factory=list, description="Prometheus instances.")
