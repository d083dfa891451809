from skillbot.keyboards.builders import (
    build_auth_keyboard,
    build_menu_keyboard,
    build_answers_keyboard,
    build_back_keyboard,
    build_continue_keyboard,
)

__all__ = [
    "build_auth_keyboard",
    "build_menu_keyboard",
    "build_answers_keyboard",
    "build_back_keyboard",
    "build_continue_keyboard",
]
