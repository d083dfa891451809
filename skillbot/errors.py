class SkillBotError(Exception):
    """Base class for application errors."""


class AuthError(SkillBotError):
    """Sign in / sign up / sign out failed. The message is user-facing."""


class FetchError(SkillBotError):
    """A read from the store failed."""


class WriteError(SkillBotError):
    """An insert or update against the store failed."""


class QuizStateError(SkillBotError):
    """An answer was submitted to a quiz that is not active."""


class PresenterStateError(SkillBotError):
    """A question screen action is not allowed in the current state."""


class SessionStateError(SkillBotError):
    """A screen transition is not allowed from the current screen."""
