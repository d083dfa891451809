from aiogram.fsm.state import State, StatesGroup


class AuthForm(StatesGroup):
    """FSM states for the sign in / sign up form."""

    entering_email = State()  # User is typing their email
    entering_password = State()  # User is typing their password
    entering_name = State()  # Sign up only: display name
