from pydantic import BaseModel
from typing import Optional


DEFAULT_COMPANY_NAME = "AMG Bijoux"


class CompanySettings(BaseModel):
    """
    The company block printed on purchase orders.
    A single row is kept; id is None until it has been saved once.
    """
    id: Optional[int] = None
    company_name: str = DEFAULT_COMPANY_NAME
    logo_url: Optional[str] = None
    address: Optional[str] = None
    siret: Optional[str] = None            # French company registration number
    email: Optional[str] = None
    phone: Optional[str] = None
