"""
Equipment kit form schemas.

A kit bundles catalogue products; its components are posted as parallel
"components[].productId" / "components[].quantity" inputs.
"""
from typing import List, Optional

from pydantic import Field

from .forms import FormModel


class EquipmentComponent(FormModel):
    product_id: str = Field(..., description="Produit")
    quantity: int = Field(1, ge=1, description="Quantité")


class EquipmentForm(FormModel):
    """Equipment kit creation and edit form."""
    name: str = Field(..., max_length=255, description="Nom du kit")
    description: Optional[str] = Field(None, description="Description du kit", json_schema_extra={"widget": "textarea"})
    price: float = Field(..., ge=0, description="Prix du kit (€)")
    components: List[EquipmentComponent] = Field(..., min_length=1, description="Composants du kit")
    is_active: bool = Field(False, description="Actif")
