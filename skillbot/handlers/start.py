import logging
from typing import Optional
from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, CallbackQuery

from skillbot.errors import AuthError
from skillbot.handlers.menu import show_auth, show_menu
from skillbot.keyboards import build_auth_keyboard
from skillbot.services.registry import SessionRegistry
from skillbot.services.session_controller import Screen
from skillbot.states import AuthForm

router = Router()


@router.message(Command("start"))
async def cmd_start(msg: Message, state: FSMContext, registry: SessionRegistry) -> None:
    """Handle /start command - resume the session or ask to sign in."""
    await state.clear()
    registry.drop_presenter(msg.from_user.id)

    controller = registry.controller(msg.from_user.id)
    screen = await controller.start()
    if screen is Screen.MENU:
        await show_menu(msg, controller)
    else:
        await show_auth(msg)


@router.callback_query(F.data.startswith("auth:"))
async def choose_auth_mode(cb: CallbackQuery, state: FSMContext) -> None:
    """Handle sign in / sign up button."""
    mode = cb.data.split(":", 1)[1]
    await state.clear()
    await state.update_data(mode=mode)
    await state.set_state(AuthForm.entering_email)
    await cb.message.answer("📧 Correo electrónico:")
    await cb.answer()


@router.message(AuthForm.entering_email)
async def process_email(msg: Message, state: FSMContext) -> None:
    """Process email input."""
    email = (msg.text or "").strip()
    if "@" not in email or len(email) > 255:
        await msg.answer("Introduce un correo válido (tu@email.com):")
        return

    await state.update_data(email=email)
    await state.set_state(AuthForm.entering_password)
    await msg.answer("🔑 Contraseña (mínimo 6 caracteres):")


@router.message(AuthForm.entering_password)
async def process_password(msg: Message, state: FSMContext, registry: SessionRegistry) -> None:
    """Process password input; sign up continues with the display name."""
    password = msg.text or ""
    await _delete_quietly(msg)

    data = await state.get_data()
    if data.get("mode") == "signup":
        await state.update_data(password=password)
        await state.set_state(AuthForm.entering_name)
        await msg.answer("👤 Nombre de usuario (envía «-» para usar tu correo):")
        return

    await _authenticate(msg, state, registry, data["email"], password)


@router.message(AuthForm.entering_name)
async def process_name(msg: Message, state: FSMContext, registry: SessionRegistry) -> None:
    """Process display name input and create the account."""
    name = (msg.text or "").strip()
    if name == "-":
        name = ""
    if len(name) > 100:
        await msg.answer("Introduce un nombre de hasta 100 caracteres:")
        return

    data = await state.get_data()
    await _authenticate(
        msg, state, registry, data["email"], data["password"], display_name=name, signup=True
    )


async def _authenticate(
    msg: Message,
    state: FSMContext,
    registry: SessionRegistry,
    email: str,
    password: str,
    display_name: Optional[str] = None,
    signup: bool = False,
) -> None:
    await state.clear()
    controller = registry.controller(msg.from_user.id)
    try:
        if signup:
            await controller.sign_up(email, password, display_name)
        else:
            await controller.sign_in(email, password)
    except AuthError as e:
        logging.info(f"Auth failed for {email}: {e}")
        await msg.answer(f"❌ {e}", reply_markup=build_auth_keyboard())
        return

    await show_menu(msg, controller)


async def _delete_quietly(msg: Message) -> None:
    try:
        await msg.delete()
    except TelegramBadRequest:
        # Can't delete in this chat, that's ok
        pass
