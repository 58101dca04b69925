"""Engine tunables."""

from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """
    Runtime settings of the discount engine.

    Business configuration (rules, excluded categories) is not here: it is
    stored in the catalog as options and edited through the admin surface.
    """
    batch_size: int = Field(default=50, ge=1, description="Products per page")
    preview_sample_size: int = Field(default=10, ge=0)
    max_workers: int = Field(
        default=1,
        ge=1,
        description="Worker threads per page; 1 processes products sequentially",
    )
    edit_link_template: str = Field(
        default="/admin/products/{product_id}/edit",
        description="Admin link shown for products in preview samples",
    )

    def edit_link(self, product_id: str) -> str:
        return self.edit_link_template.format(product_id=product_id)
