"""Pydantic models for the model capability registry.

This module defines the schema of ``<home>/models.yaml``.
"""

from pydantic import BaseModel, Field


class ModelCost(BaseModel):
    """Price of a model in USD per million tokens.

    ``None`` means the provider does not bill per token (or the price is
    unknown); estimates treat it as zero.
    """

    input_per_1m: float | None = Field(default=None, ge=0, description="Input price per 1M tokens")
    output_per_1m: float | None = Field(
        default=None, ge=0, description="Output price per 1M tokens"
    )


class ModelEntry(BaseModel):
    """Capabilities and pricing of one model.

    Attributes:
        provider: Vendor name (anthropic, google, openai, local).
        access: Transport used to reach it (cli or http).
        context_window: Maximum context in tokens, if known.
        strengths: Free-form capability tags.
        weaknesses: Free-form limitation tags.
        cost: Per-million-token pricing.
        speed: Relative speed label.
        best_for: Example tasks the model is a good fit for.
    """

    provider: str = Field(default="unknown", description="Vendor name")
    access: str = Field(default="cli", description="Transport (cli or http)")
    context_window: int | None = Field(default=None, ge=1, description="Context window in tokens")
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    cost: ModelCost = Field(default_factory=ModelCost)
    speed: str = Field(default="medium", description="Relative speed label")
    best_for: list[str] = Field(default_factory=list)


class ModelRegistry(BaseModel):
    """Complete model capability registry.

    Attributes:
        models: Model id to capability entry.
        routing_principles: Human-readable routing guidance.
    """

    models: dict[str, ModelEntry] = Field(default_factory=dict)
    routing_principles: list[str] = Field(default_factory=list)

    def get(self, model_id: str) -> ModelEntry | None:
        """Look up a model entry by id."""
        return self.models.get(model_id)
