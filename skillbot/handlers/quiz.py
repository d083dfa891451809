import logging
from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.types import Message, CallbackQuery

from skillbot.errors import PresenterStateError
from skillbot.handlers.menu import show_menu
from skillbot.keyboards import (
    build_answers_keyboard,
    build_back_keyboard,
    build_continue_keyboard,
)
from skillbot.services.question_presenter import QuestionPresenter
from skillbot.services.registry import SessionRegistry
from skillbot.services.render import (
    render_empty,
    render_feedback,
    render_question,
    render_results,
)
from skillbot.services.session_controller import Screen, SessionController

router = Router()


@router.callback_query(F.data.startswith("comp:"))
async def choose_competency(cb: CallbackQuery, registry: SessionRegistry) -> None:
    """Handle competency selection and start the quiz."""
    user_id = cb.from_user.id
    controller = registry.controller(user_id)
    competency = controller.find_competency(cb.data.split(":", 1)[1])
    if controller.screen is not Screen.MENU or competency is None:
        await cb.answer(
            "⚠️ Acción caducada o sesión terminada. Pulsa /start", show_alert=True
        )
        return

    runner = await controller.select_competency(competency)
    if runner.is_empty:
        await _edit_or_send(cb.message, render_empty(competency), build_back_keyboard())
        await cb.answer()
        return

    message = cb.message

    async def advance() -> None:
        await show_next(message, registry, user_id, controller, presenter)

    presenter = QuestionPresenter(runner, advance, feedback_delay=registry.feedback_delay)
    registry.bind_presenter(user_id, presenter)

    await send_question(message, presenter, edit=True)
    await cb.answer()


async def send_question(msg: Message, presenter: QuestionPresenter, edit: bool = False) -> None:
    """Send the presenter's current question to the user."""
    runner = presenter.runner
    question = presenter.question
    text = render_question(question, runner.competency, presenter.number, runner.total)
    keyboard = build_answers_keyboard(question, presenter.number - 1, presenter.selected)
    if edit:
        await _edit_or_send(msg, text, keyboard)
    else:
        await msg.answer(text, reply_markup=keyboard, parse_mode="MarkdownV2")


async def show_next(
    msg: Message,
    registry: SessionRegistry,
    user_id: int,
    controller: SessionController,
    presenter: QuestionPresenter,
) -> None:
    """Called when the feedback delay is over: next question or results."""
    if not presenter.runner.finished:
        await send_question(msg, presenter)
        return

    registry.drop_presenter(user_id)
    results = controller.last_results or presenter.runner.results()
    await msg.answer(
        render_results(results),
        reply_markup=build_continue_keyboard(),
        parse_mode="MarkdownV2",
    )


def _parse_question_idx(data: str) -> tuple[int, ...]:
    return tuple(int(part) for part in data.split(":")[1:])


@router.callback_query(F.data.startswith("pick:"))
async def pick_answer(cb: CallbackQuery, registry: SessionRegistry) -> None:
    """Handle a tentative answer choice."""
    try:
        qidx, opt = _parse_question_idx(cb.data)
    except ValueError as e:
        logging.error(f"Invalid callback format: {cb.data} - {e}")
        await cb.answer("❌ Error al procesar la respuesta")
        return

    presenter = registry.presenter(cb.from_user.id)
    if not presenter or presenter.question is None or qidx != presenter.number - 1:
        await cb.answer("⚠️ Esta pregunta ya fue respondida", show_alert=True)
        return

    try:
        presenter.select_choice(opt)
    except PresenterStateError:
        await cb.answer("⏳ Espera a la siguiente pregunta")
        return

    try:
        await cb.message.edit_reply_markup(
            reply_markup=build_answers_keyboard(presenter.question, qidx, opt)
        )
    except TelegramBadRequest as e:
        # Same option picked twice: "message is not modified"
        logging.debug(f"Keyboard not updated: {e}")
    await cb.answer()


@router.callback_query(F.data.startswith("confirm:"))
async def confirm_answer(cb: CallbackQuery, registry: SessionRegistry) -> None:
    """Handle answer confirmation and show feedback."""
    try:
        (qidx,) = _parse_question_idx(cb.data)
    except ValueError as e:
        logging.error(f"Invalid callback format: {cb.data} - {e}")
        await cb.answer("❌ Error al procesar la respuesta")
        return

    presenter = registry.presenter(cb.from_user.id)
    if not presenter or presenter.question is None or qidx != presenter.number - 1:
        await cb.answer("⚠️ Esta pregunta ya fue respondida", show_alert=True)
        return

    question = presenter.question
    selected = presenter.selected
    try:
        outcome = await presenter.confirm()
    except PresenterStateError:
        await cb.answer("Elige una respuesta primero")
        return

    await cb.answer("✅ ¡Correcto!" if outcome.is_correct else "❌ Incorrecto")
    await _edit_or_send(
        cb.message, render_feedback(question, selected, outcome.is_correct), None
    )


@router.callback_query(F.data == "back")
async def leave_quiz(cb: CallbackQuery, registry: SessionRegistry) -> None:
    """Handle "back": leave the quiz without scoring it."""
    registry.drop_presenter(cb.from_user.id)
    controller = registry.controller(cb.from_user.id)
    if not controller.identity:
        await cb.answer("⚠️ Sesión terminada. Pulsa /start", show_alert=True)
        return

    if controller.screen is Screen.IN_COMPETENCY:
        await controller.leave_competency()
    else:
        await controller.enter_menu()
    await show_menu(cb.message, controller, edit=True)
    await cb.answer()


async def _edit_or_send(msg: Message, text: str, keyboard) -> None:
    try:
        await msg.edit_text(text, reply_markup=keyboard, parse_mode="MarkdownV2")
    except TelegramBadRequest as e:
        logging.warning(f"Can't edit message, sending a new one: {e}")
        await msg.answer(text, reply_markup=keyboard, parse_mode="MarkdownV2")


@router.callback_query()
async def unknown_callback(cb: CallbackQuery) -> None:
    """Handle unknown callbacks."""
    await cb.answer(
        "⚠️ Acción caducada o sesión terminada. Pulsa /start", show_alert=True
    )
