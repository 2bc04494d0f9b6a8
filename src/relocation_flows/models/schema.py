"""Pydantic models for lookup tables under ``flows/const/``.

  - ConsulateConst: consulate address block keyed by the ``consulate`` answer
  - VisaTypeConst: formal visa name keyed by the ``visa_type`` answer
  - ApostilleOfficeConst: issuing office per US state
"""

from pydantic import BaseModel


class ConsulateConst(BaseModel):
    """Consulate from consulates.yaml; ``address`` is a multi-line block."""

    value: str
    address: str


class VisaTypeConst(BaseModel):
    """Visa type from visa_types.yaml."""

    value: str
    label: str


class ApostilleOfficeConst(BaseModel):
    """State apostille office from apostille_offices.yaml."""

    code: str
    name: str
    agency: str
    method: str
    cost: str
    time: str
    url: str
