"""Pydantic models for OpenAI structured outputs.

These models define the schema for structured outputs from OpenAI API.
Used with chat.completions.parse() for native Pydantic support.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class VisionFoodItem(BaseModel):
    """
    Single food item recognized on the plate.

    Maps to domain entity FoodItem (name_pt → display_name,
    name_en → lookup_name, quantity_grams → estimated_grams).
    """

    name_pt: str = Field(
        ...,
        description="Short Brazilian Portuguese name (e.g., 'Arroz branco')",
    )
    name_en: str = Field(
        ...,
        description="Exact USDA FoodData Central description (e.g., 'Rice, white, cooked')",
    )
    portion_label: Literal["small", "medium", "large"] = Field(
        ...,
        description="Portion size relative to a typical serving",
    )
    quantity_grams: float = Field(
        ...,
        ge=0,
        description="Estimated weight in grams",
    )
    confidence: Optional[float] = Field(
        None,
        ge=0.0,
        le=1.0,
        description="Confidence score between 0.0 and 1.0",
    )
    reasoning: str = Field(
        ...,
        description="Telegraphic justification, at most 5 words",
    )


class PlateRecognitionResponse(BaseModel):
    """
    Complete response from plate recognition.

    This is the root model for OpenAI structured outputs.
    """

    items: List[VisionFoodItem] = Field(
        default_factory=list,
        description="Food items in the order they should be listed to the user",
    )
