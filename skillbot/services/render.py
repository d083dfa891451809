import re
from typing import Optional

from skillbot.domain import POINTS_PER_LEVEL, Competency, Profile, Question, QuestionKind, QuizResults
from skillbot.services.catalog import CatalogItem

COLOR_DOTS = {"blue": "🔵", "red": "🔴", "green": "🟢", "yellow": "🟡"}
SHAPE_GLYPHS = {
    "circle": dict(COLOR_DOTS),
    "square": {"blue": "🟦", "red": "🟥", "green": "🟩", "yellow": "🟨"},
    # No colored triangle emoji: a triangle followed by its color
    "triangle": {color: f"▲{dot}" for color, dot in COLOR_DOTS.items()},
}
# Color used when the pattern doesn't give one
DEFAULT_SHAPE_COLORS = {"circle": "blue", "square": "red", "triangle": "green"}
EMPTY_SLOT = "❔"
UNKNOWN_SHAPE = "⬜"

WELCOME = (
    "🎯 Desarrollo Pro\n"
    "Mejora tus habilidades profesionales con desafíos interactivos.\n\n"
    "1. Elige una competencia\n"
    "2. Resuelve desafíos de razonamiento y lógica\n"
    "3. Acumula puntos y desbloquea niveles"
)


def escape_md(text: str) -> str:
    """Escape special characters for MarkdownV2."""
    return re.sub(r"([_*\[\]()~`>#+\-=|{}.!\\])", r"\\\1", str(text))


def progress_bar(percent: float, width: int = 10) -> str:
    filled = max(0, min(width, round(percent * width / 100)))
    return "▰" * filled + "▱" * (width - filled)


def option_label(index: int, option: str) -> str:
    return f"{chr(ord('A') + index)}. {option}"


def render_shape(shape: str, color: Optional[str]) -> str:
    if shape == "?":
        return EMPTY_SLOT
    glyphs = SHAPE_GLYPHS.get(shape)
    if not glyphs:
        return UNKNOWN_SHAPE
    return glyphs.get(color or "") or glyphs[DEFAULT_SHAPE_COLORS[shape]]


def render_visual(question: Question) -> str:
    """Plain-text visual aid for a question, empty when it has none."""
    data = question.visual_data or {}
    if question.kind is QuestionKind.PATTERN and data.get("pattern"):
        colors = data.get("colors") or []
        return " ".join(
            render_shape(shape, colors[i] if i < len(colors) else None)
            for i, shape in enumerate(data["pattern"])
        )
    if question.kind is QuestionKind.SEQUENCE and data.get("sequence"):
        return "  ".join(str(n) for n in data["sequence"]) + "  " + EMPTY_SLOT
    return ""


def render_header(profile: Optional[Profile]) -> str:
    if not profile:
        return f"*{escape_md('Desarrollo Pro')}*"
    name = profile.username or "Jugador"
    return (
        f"👤 *{escape_md(name)}*\n"
        f"🏆 Puntos: *{profile.total_score}*   ⭐ Nivel: *{profile.current_level}*\n"
        f"{progress_bar(profile.level_progress)} "
        f"{profile.level_progress}/{POINTS_PER_LEVEL}"
    )


def render_menu(profile: Optional[Profile], items: list[CatalogItem]) -> str:
    lines = [
        render_header(profile),
        "",
        "*Competencias Profesionales*",
        escape_md("Selecciona una competencia para comenzar tu entrenamiento:"),
    ]
    for item in items:
        lines.append("")
        lines.append(
            f"{item.glyph} *{escape_md(item.competency.name)}*  "
            f"{progress_bar(item.progress)} {item.progress}%"
        )
        if item.competency.description:
            lines.append(f"_{escape_md(item.competency.description)}_")
    if not items:
        lines.append("")
        lines.append(escape_md("No hay competencias disponibles."))
    return "\n".join(lines)


def render_question(
    question: Question, competency: Competency, number: int, total: int
) -> str:
    percent = number * 100 / total if total else 0
    text = (
        f"*{escape_md(competency.name)}*\n"
        f"_Pregunta {number} de {total}_ · Nivel {question.level}\n"
        f"{progress_bar(percent)}\n\n"
        f"❓ *{escape_md(question.text)}*"
    )
    visual = render_visual(question)
    if visual:
        text += f"\n\n{escape_md(visual)}"
    return text


def render_feedback(question: Question, selected: int, is_correct: bool) -> str:
    lines = [f"❓ *{escape_md(question.text)}*", ""]
    for i, option in enumerate(question.options):
        if i == question.correct_answer:
            mark = "✅"
        elif i == selected:
            mark = "❌"
        else:
            mark = "▫️"
        lines.append(f"{mark} {escape_md(option_label(i, option))}")
    lines.append("")
    if is_correct:
        lines.append(f"🎉 *{escape_md('¡Correcto!')}* \\+{question.points} puntos")
    else:
        lines.append(f"*Incorrecto\\.* {escape_md('Inténtalo de nuevo')}")
    if question.explanation:
        lines.append(f"_{escape_md(question.explanation)}_")
    return "\n".join(lines)


def render_results(results: QuizResults) -> str:
    percent = results.accuracy * 100
    return (
        f"🏆 *{escape_md('¡Completado!')}*\n"
        f"{escape_md(results.competency.name)}\n\n"
        f"✅ Correctas: *{results.correct_count}* de {results.total_answered}\n"
        f"✨ Puntos: *{results.points_earned}*\n"
        f"🎯 Precisión: *{percent:.0f}%*\n"
        f"{progress_bar(percent)}"
    )


def render_empty(competency: Competency) -> str:
    return (
        f"*{escape_md(competency.name)}*\n\n"
        f"{escape_md('No hay preguntas disponibles.')}"
    )
