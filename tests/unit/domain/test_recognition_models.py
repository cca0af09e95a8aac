"""
Tests for recognition domain models.
"""

import pytest
from pydantic import ValidationError

from platebot.domain.meal.recognition.models import FoodItem, PlateAnalysis


def _item(name: str = "Arroz branco", grams: float = 150.0) -> FoodItem:
    return FoodItem(display_name=name, lookup_name="Rice, white, cooked", estimated_grams=grams)


class TestFoodItem:
    """Tests for FoodItem value object."""

    def test_names_are_stripped(self) -> None:
        item = FoodItem(display_name="  Arroz  ", lookup_name=" Rice, cooked ")

        assert item.display_name == "Arroz"
        assert item.lookup_name == "Rice, cooked"

    def test_blank_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FoodItem(display_name="   ", lookup_name="Rice")

    def test_negative_grams_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FoodItem(display_name="Arroz", lookup_name="Rice", estimated_grams=-1.0)

    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            FoodItem(display_name="Arroz", lookup_name="Rice", confidence=1.5)

    def test_optional_fields_default_to_none(self) -> None:
        item = FoodItem(display_name="Arroz", lookup_name="Rice")

        assert item.estimated_grams is None
        assert item.confidence is None

    def test_is_immutable(self) -> None:
        item = _item()

        with pytest.raises(ValidationError):
            item.estimated_grams = 10.0  # type: ignore[misc]

    def test_with_grams_returns_copy(self) -> None:
        item = _item(grams=150.0)

        updated = item.with_grams(200.0)

        assert updated.estimated_grams == 200.0
        assert item.estimated_grams == 150.0
        assert updated.lookup_name == item.lookup_name


class TestPlateAnalysis:
    """Tests for PlateAnalysis."""

    def test_fresh_ids_per_analysis(self) -> None:
        assert PlateAnalysis().analysis_id != PlateAnalysis().analysis_id

    def test_empty_analysis(self) -> None:
        analysis = PlateAnalysis()

        assert analysis.is_empty()
        assert analysis.item_count() == 0
        assert not analysis.has_index(0)

    def test_has_index(self) -> None:
        analysis = PlateAnalysis(items=(_item("A"), _item("B"), _item("C")))

        assert analysis.has_index(0)
        assert analysis.has_index(2)
        assert not analysis.has_index(3)
        assert not analysis.has_index(-1)

    def test_with_item_grams_preserves_id_and_order(self) -> None:
        analysis = PlateAnalysis(items=(_item("A", 10), _item("B", 20), _item("C", 30)))

        updated = analysis.with_item_grams(1, 99.0)

        assert updated.analysis_id == analysis.analysis_id
        assert [i.display_name for i in updated.items] == ["A", "B", "C"]
        assert [i.estimated_grams for i in updated.items] == [10, 99.0, 30]
        # Original untouched
        assert analysis.items[1].estimated_grams == 20

    def test_with_item_grams_out_of_range(self) -> None:
        analysis = PlateAnalysis(items=(_item(),))

        with pytest.raises(IndexError):
            analysis.with_item_grams(5, 10.0)
