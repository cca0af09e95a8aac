"""
User-facing copy (pt-BR).

Every text the bot sends lives here so the engine only decides *which*
message goes out. Numbers follow Brazilian formatting (decimal comma).
"""

import math
from typing import Dict, List, Optional, Sequence

from platebot.domain.meal.nutrition.models import (
    EnrichedFoodItem,
    FullAnalysis,
    NutritionalTotals,
)
from platebot.domain.meal.recognition.models import FoodItem, PlateAnalysis

# Reply ids
CONFIRM_ANALYSIS_ID = "confirm_analysis"
EDIT_ANALYSIS_ID = "edit_analysis"
EDIT_ITEM_PREFIX = "edit_item_"

# Progress
PHOTO_RECEIVED = "📸 Foto recebida!"
ANALYZING = "🤖 Analisando imagem..."
CALCULATING = "Confirmado! Calculando os nutrientes... 📊"

# Failures
NOT_IDENTIFIED = "Não consegui identificar os itens com segurança. Pode enviar outra foto?"
ANALYSIS_FAILED = "Não consegui analisar a foto agora. Pode tentar novamente?"
INVALID_WEIGHT = "Formato de peso inválido. Envie apenas o número (ex: `120`)."
INVALID_SELECTION = "Houve um erro ao selecionar o item. Tente novamente."
NOTHING_TO_CALCULATE = "Não consegui calcular. Tente novamente."

# Session
ONBOARDING = "Olá! Para começar, me envie uma **FOTO** do seu prato."
EXPIRED = "Sua análise expirou. Envie a foto novamente."
NO_PENDING_ANALYSIS = "Não achei nenhuma análise pendente. Envie uma foto primeiro."
PHOTOS_ONLY = "Por enquanto analiso apenas *fotos*. Envie uma imagem do seu prato."

# Menus
DECISION_BUTTONS: Dict[str, str] = {
    CONFIRM_ANALYSIS_ID: "✅ Confirmar",
    EDIT_ANALYSIS_ID: "✏️ Editar",
}
LIST_BUTTON_LABEL = "Editar ou Confirmar"
CONFIRM_ROW_LABEL = "✅ Confirmar Análise"

_SUMMARY_HEADER = "Identifiquei estes itens:\n\n"
_DECISION_FOOTER = "\nOs pesos estão corretos?"
_LIST_FOOTER = "\nClique em um item abaixo para editar o peso, ou confirme a análise."
_SEPARATOR = "━━━━━━━━━━━━━━━━━"
_FALLBACK_NAME = "item"


def round_grams(grams: Optional[float]) -> str:
    """Whole grams rounded half up, ``?`` when unknown."""
    if grams is None:
        return "?"
    return str(int(math.floor(grams + 0.5)))


def format_decimal(value: float, places: int) -> str:
    """
    Format a number with a decimal comma.

    Example:
        >>> format_decimal(56.42, 1)
        '56,4'
    """
    return f"{value:.{places}f}".replace(".", ",")


def _item_lines(items: Sequence[FoodItem]) -> str:
    return "".join(
        f"• *{item.display_name or _FALLBACK_NAME}* (~{round_grams(item.estimated_grams)} g)\n"
        for item in items
    )


def format_decision_body(analysis: PlateAnalysis) -> str:
    """Item summary shown with the confirm/edit buttons."""
    return _SUMMARY_HEADER + _item_lines(analysis.items) + _DECISION_FOOTER


def format_list_body(analysis: PlateAnalysis) -> str:
    """Item summary shown above the edit list menu."""
    return _SUMMARY_HEADER + _item_lines(analysis.items) + _LIST_FOOTER


def build_edit_rows(analysis: PlateAnalysis, row_limit: int = 10) -> Dict[str, str]:
    """
    Build list rows: one ``edit_item_<i>`` per item, then the confirm row.

    Item rows are capped at ``row_limit - 1`` so the confirm row always fits.
    Labels are passed untruncated; the transport applies its display limit.
    """
    max_items = max(row_limit - 1, 0)
    rows: Dict[str, str] = {}
    for index, item in enumerate(analysis.items[:max_items]):
        rows[f"{EDIT_ITEM_PREFIX}{index}"] = item.display_name or _FALLBACK_NAME
    rows[CONFIRM_ANALYSIS_ID] = CONFIRM_ROW_LABEL
    return rows


def weight_prompt(item: FoodItem) -> str:
    grams = item.estimated_grams
    current = round_grams(grams) if grams is not None else "0"
    return f"Qual o novo peso (em gramas) para *{item.display_name}*?\n(Peso atual: ~{current}g)"


def weight_updated(item: FoodItem, grams: float) -> str:
    return f"✅ *{item.display_name}* atualizado para *{round_grams(grams)}g*."


def _nutrient_lines(calories: float, carbs: float, protein: float, fat: float) -> List[str]:
    return [
        f"  Calorias: {format_decimal(calories, 0)} kcal",
        f"  Carboidratos: {format_decimal(carbs, 1)} g",
        f"  Proteínas: {format_decimal(protein, 1)} g",
        f"  Gorduras: {format_decimal(fat, 1)} g",
    ]


def _format_enriched_item(item: EnrichedFoodItem) -> str:
    lines = [f"*{item.display_name or _FALLBACK_NAME} - {round_grams(item.estimated_grams)}g*"]
    if item.found:
        lines.extend(_nutrient_lines(item.calories_kcal, item.carbs_g, item.protein_g, item.fat_g))
    else:
        lines.append("  _(Sem dados nutricionais)_")
    return "\n".join(lines) + "\n"


def _format_totals(totals: NutritionalTotals) -> str:
    lines = ["*Total analisado*:"]
    lines.extend(
        _nutrient_lines(totals.calories_kcal, totals.carbs_g, totals.protein_g, totals.fat_g)
    )
    return "\n".join(lines)


def format_full_analysis(analysis: FullAnalysis) -> str:
    """
    Render the confirmed breakdown.

    Example output::

        *Análise Nutricional*

        *Arroz branco - 200g*
          Calorias: 260 kcal
          Carboidratos: 56,4 g
          Proteínas: 5,4 g
          Gorduras: 0,6 g

        ━━━━━━━━━━━━━━━━━
        *Total analisado*:
          Calorias: 260 kcal
          ...
    """
    if not analysis.items:
        return NOTHING_TO_CALCULATE

    blocks = ["*Análise Nutricional*\n\n"]
    for item in analysis.items:
        blocks.append(_format_enriched_item(item) + "\n")
    blocks.append(_SEPARATOR + "\n")
    blocks.append(_format_totals(analysis.totals))
    return "".join(blocks)
