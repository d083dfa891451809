from typing import Optional

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from skillbot.domain import Question
from skillbot.services.catalog import CatalogItem
from skillbot.services.render import option_label


def build_auth_keyboard() -> InlineKeyboardMarkup:
    """Build keyboard for choosing sign in or sign up."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="Iniciar sesión", callback_data="auth:signin")],
            [InlineKeyboardButton(text="Registrarse", callback_data="auth:signup")],
        ]
    )


def build_menu_keyboard(items: list[CatalogItem]) -> InlineKeyboardMarkup:
    """Build keyboard with one button per competency plus sign out."""
    buttons = [
        [
            InlineKeyboardButton(
                text=f"{item.glyph} {item.competency.name}",
                callback_data=f"comp:{item.competency.id}",
            )
        ]
        for item in items
    ]
    buttons.append([InlineKeyboardButton(text="🚪 Salir", callback_data="signout")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def build_answers_keyboard(
    question: Question, question_idx: int, selected: Optional[int] = None
) -> InlineKeyboardMarkup:
    """
    Build keyboard for answer options.

    The picked option is marked and a confirm button appears once
    something is picked.
    """
    buttons = []
    for i, option in enumerate(question.options):
        label = option_label(i, option)
        if i == selected:
            label = f"🔘 {label}"
        buttons.append(
            [InlineKeyboardButton(text=label, callback_data=f"pick:{question_idx}:{i}")]
        )
    if selected is not None:
        buttons.append(
            [
                InlineKeyboardButton(
                    text="Confirmar respuesta", callback_data=f"confirm:{question_idx}"
                )
            ]
        )
    buttons.append([InlineKeyboardButton(text="⬅️ Volver", callback_data="back")])
    return InlineKeyboardMarkup(inline_keyboard=buttons)


def build_back_keyboard() -> InlineKeyboardMarkup:
    """Build keyboard with a single back button."""
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="⬅️ Volver", callback_data="back")]]
    )


def build_continue_keyboard() -> InlineKeyboardMarkup:
    """Build keyboard shown under the results."""
    return InlineKeyboardMarkup(
        inline_keyboard=[[InlineKeyboardButton(text="Continuar", callback_data="menu")]]
    )
