import logging
from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery

from skillbot.keyboards import build_auth_keyboard, build_menu_keyboard
from skillbot.services.registry import SessionRegistry
from skillbot.services.render import WELCOME, escape_md, render_menu
from skillbot.services.session_controller import SessionController

router = Router()


async def show_menu(msg: Message, controller: SessionController, edit: bool = False) -> None:
    """Send (or edit into) the header plus competency catalog."""
    text = render_menu(controller.profile, controller.catalog)
    keyboard = build_menu_keyboard(controller.catalog)
    if edit:
        try:
            await msg.edit_text(text, reply_markup=keyboard, parse_mode="MarkdownV2")
            return
        except TelegramBadRequest as e:
            logging.warning(f"Can't edit menu message: {e}")
    await msg.answer(text, reply_markup=keyboard, parse_mode="MarkdownV2")


async def show_auth(msg: Message) -> None:
    """Send the welcome text with sign in / sign up buttons."""
    await msg.answer(
        escape_md(WELCOME), reply_markup=build_auth_keyboard(), parse_mode="MarkdownV2"
    )


@router.callback_query(F.data == "menu")
async def back_to_menu(cb: CallbackQuery, registry: SessionRegistry) -> None:
    """Handle "continue" under the results: reload and show the menu."""
    registry.drop_presenter(cb.from_user.id)
    controller = registry.controller(cb.from_user.id)
    if not controller.identity:
        await cb.answer("⚠️ Sesión terminada. Pulsa /start", show_alert=True)
        return

    await controller.enter_menu()
    await show_menu(cb.message, controller, edit=True)
    await cb.answer()


@router.callback_query(F.data == "signout")
async def sign_out(cb: CallbackQuery, state: FSMContext, registry: SessionRegistry) -> None:
    """Sign out; the user lands on the auth screen even if the store call fails."""
    registry.drop_presenter(cb.from_user.id)
    await state.clear()
    await registry.controller(cb.from_user.id).sign_out()
    registry.forget(cb.from_user.id)
    await show_auth(cb.message)
    await cb.answer("Sesión cerrada")
