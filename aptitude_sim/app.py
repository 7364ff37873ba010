"""Pygame UI shell for the aptitude test simulator.

Screens:
- Main menu (start test, progress, quit)
- Instructions
- Test (question card, navigator, timer, mark for review, submit confirm)
- Results (score, section-wise breakdown, answer review)
- Progress (history statistics)

Timing/scoring/selection/state lives in aptitude_sim/* (core modules); this
module only renders snapshots and forwards user intents.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

import pygame

from .errors import AptitudeSimError
from .question_bank import Category
from .scoring import format_time, performance_level, review_answers
from .session import SessionPhase, SessionSnapshot
from .simulator import Simulator, build_simulator
from .stats import summarize

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 600)
TARGET_FPS = 60
PAGE_STEP = 5

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
HEADER_BG = (18, 30, 118)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
ACTIVE_BG = (244, 248, 255)
ACTIVE_TEXT = (14, 26, 74)
GOOD = (92, 200, 120)
BAD = (230, 92, 92)
WARN = (240, 196, 70)


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def replace(self, screen: Screen) -> None:
        if len(self._screens) > 1:
            self._screens.pop()
        self._screens.append(screen)

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _fit_label(font: pygame.font.Font, label: str, max_width: int) -> str:
    if max_width <= 0:
        return ""
    if font.size(label)[0] <= max_width:
        return label
    clipped = label
    while clipped and font.size(f"{clipped}...")[0] > max_width:
        clipped = clipped[:-1]
    return f"{clipped}..." if clipped else "..."


def _wrap_lines(font: pygame.font.Font, text: str, width: int) -> list[str]:
    lines: list[str] = []
    cur = ""
    for word in str(text).split():
        trial = word if cur == "" else f"{cur} {word}"
        if font.size(trial)[0] <= width:
            cur = trial
            continue
        if cur:
            lines.append(cur)
        cur = word
    if cur:
        lines.append(cur)
    return lines


def _draw_wrapped(
    surface: pygame.Surface,
    font: pygame.font.Font,
    text: str,
    rect: pygame.Rect,
    *,
    color: tuple[int, int, int],
    max_lines: int,
) -> int:
    """Draw word-wrapped text; returns the y below the last line."""

    y = rect.y
    line_h = font.get_linesize() + 2
    for line in _wrap_lines(font, text, rect.w)[:max_lines]:
        surface.blit(font.render(line, True, color), (rect.x, y))
        y += line_h
    return y


def _draw_frame(surface: pygame.Surface, title: str, tag: str, hint_font: pygame.font.Font) -> pygame.Rect:
    """Background, bordered panel and header bar shared by every screen."""

    w, h = surface.get_size()
    surface.fill(BG)
    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)

    header_h = max(34, min(52, h // 10))
    header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, header_h)
    pygame.draw.rect(surface, HEADER_BG, header)
    pygame.draw.line(surface, BORDER, (header.x, header.bottom), (header.right, header.bottom), 1)

    tag_s = hint_font.render(tag, True, TEXT_MUTED)
    surface.blit(tag_s, (header.x + 12, header.y + (header.h - tag_s.get_height()) // 2))
    title_s = hint_font.render(title, True, TEXT_MAIN)
    surface.blit(title_s, title_s.get_rect(center=(frame.centerx, header.centery)))

    return pygame.Rect(frame.x + 16, header.bottom + 12, frame.w - 32, frame.bottom - header.bottom - 24)


class MenuScreen:
    def __init__(self, app: App, title: str, items: list[MenuItem], *, is_root: bool = False) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 24)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        key = event.key
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, self._title, "MENU", self._hint_font)

        row_h = 40
        gap = 8
        total_h = len(self._items) * (row_h + gap)
        y = content.y + max(8, (content.h - total_h) // 2)
        for idx, item in enumerate(self._items):
            row = pygame.Rect(content.x + content.w // 4, y, content.w // 2, row_h)
            selected = idx == self._selected
            pygame.draw.rect(surface, ACTIVE_BG if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (62, 84, 152), row, 1)
            label = _fit_label(self._item_font, item.label, row.w - 20)
            text = self._item_font.render(label, True, ACTIVE_TEXT if selected else TEXT_MAIN)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h + gap

        foot = self._hint_font.render("Enter: Select  |  Esc: Back", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(content.centerx, content.bottom)))


class InstructionsScreen:
    def __init__(self, app: App, sim: Simulator, *, on_begin: Callable[[], None]) -> None:
        self._app = app
        self._sim = sim
        self._on_begin = on_begin
        self._font = pygame.font.Font(None, 28)
        self._hint_font = pygame.font.Font(None, 24)
        self._error: str | None = None

    def lines(self) -> list[str]:
        cfg = self._sim.config
        sections = ", ".join(f"{n} {c.display_name}" for c, n in cfg.quotas.items() if n > 0)
        return [
            f"{cfg.total_questions} multiple-choice questions: {sections}.",
            f"You have {format_time(cfg.session_duration_s)} (mm:ss). The test submits itself when time runs out.",
            "Questions from all sections are mixed together.",
            "",
            "Controls:",
            "1-4 or A-D: choose an option     Left/Right: previous/next question",
            "PgUp/PgDn: jump 5 questions     M: mark for review     S: submit     Esc: leave test",
            "",
            "Press Enter to begin.",
        ]

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._begin()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def _begin(self) -> None:
        try:
            self._on_begin()
        except AptitudeSimError as e:
            # Bank too small for the quotas: show it instead of crashing the loop.
            logger.exception("could not start test")
            self._error = str(e)

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "Instructions", "TEST", self._hint_font)
        y = content.y + 8
        for line in self.lines():
            surface.blit(self._font.render(line, True, TEXT_MAIN), (content.x + 8, y))
            y += self._font.get_linesize() + 4
        if self._error:
            err = self._font.render(_fit_label(self._font, self._error, content.w), True, BAD)
            surface.blit(err, (content.x + 8, y + 12))


class ExamScreen:
    """Active attempt. Renders session snapshots; every key is a session intent."""

    def __init__(self, app: App, sim: Simulator, *, on_submitted: Callable[[], None]) -> None:
        self._app = app
        self._sim = sim
        self._on_submitted = on_submitted
        self._confirm: str | None = None  # "submit" | "leave"
        self._option_hitboxes: dict[int, pygame.Rect] = {}
        self._nav_hitboxes: dict[int, pygame.Rect] = {}

        self._font = pygame.font.Font(None, 30)
        self._small_font = pygame.font.Font(None, 24)
        self._timer_font = pygame.font.Font(None, 52)

    def handle_event(self, event: pygame.event.Event) -> None:
        session = self._sim.session
        if session.phase is not SessionPhase.ACTIVE:
            return

        if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1 and self._confirm is None:
            for idx, rect in self._option_hitboxes.items():
                if rect.collidepoint(event.pos):
                    session.select_current(idx)
                    return
            for idx, rect in self._nav_hitboxes.items():
                if rect.collidepoint(event.pos):
                    session.navigate(idx)
                    return
            return

        if event.type != pygame.KEYDOWN:
            return
        key = event.key

        if self._confirm is not None:
            if key in (pygame.K_y, pygame.K_RETURN, pygame.K_KP_ENTER):
                action = self._confirm
                self._confirm = None
                if action == "submit":
                    self._sim.submit()
                else:
                    self._sim.end_test()
                    self._app.pop()
            elif key in (pygame.K_n, pygame.K_ESCAPE, pygame.K_BACKSPACE):
                self._confirm = None
            return

        choice = self._choice_from_key(key)
        if choice is not None:
            session.select_current(choice)
        elif key in (pygame.K_RIGHT, pygame.K_RETURN, pygame.K_KP_ENTER):
            session.next_question()
        elif key == pygame.K_LEFT:
            session.previous_question()
        elif key == pygame.K_HOME:
            session.navigate(0)
        elif key == pygame.K_END:
            session.navigate(len(session.question_set or ()) - 1)
        elif key in (pygame.K_PAGEUP, pygame.K_PAGEDOWN):
            last = len(session.question_set or ()) - 1
            step = -PAGE_STEP if key == pygame.K_PAGEUP else PAGE_STEP
            session.navigate(max(0, min(last, session.current_index + step)))
        elif key == pygame.K_m:
            question = session.current_question
            if question is not None:
                session.toggle_mark(question.id)
        elif key == pygame.K_s:
            self._confirm = "submit"
        elif key == pygame.K_ESCAPE:
            self._confirm = "leave"

    @staticmethod
    def _choice_from_key(key: int) -> int | None:
        mapping = {
            pygame.K_1: 0,
            pygame.K_2: 1,
            pygame.K_3: 2,
            pygame.K_4: 3,
            pygame.K_KP1: 0,
            pygame.K_KP2: 1,
            pygame.K_KP3: 2,
            pygame.K_KP4: 3,
            pygame.K_a: 0,
            pygame.K_b: 1,
            pygame.K_c: 2,
            pygame.K_d: 3,
        }
        return mapping.get(key)

    def render(self, surface: pygame.Surface) -> None:
        snap = self._sim.session.snapshot()
        if snap.phase is SessionPhase.SUBMITTED:
            self._on_submitted()
            return
        if snap.phase is not SessionPhase.ACTIVE or snap.question is None:
            return

        content = _draw_frame(
            surface,
            f"Question {snap.current_index + 1} of {snap.total_questions}",
            snap.question.category.display_name.upper(),
            self._small_font,
        )
        side_w = min(260, content.w // 3)
        main = pygame.Rect(content.x, content.y, content.w - side_w - 16, content.h)
        side = pygame.Rect(main.right + 16, content.y, side_w, content.h)

        self._render_question(surface, main, snap)
        self._render_sidebar(surface, side, snap)
        if self._confirm is not None:
            self._render_confirm(surface, snap)

    def _render_question(self, surface: pygame.Surface, rect: pygame.Rect, snap: SessionSnapshot) -> None:
        question = snap.question
        assert question is not None

        y = _draw_wrapped(surface, self._font, question.prompt, rect, color=TEXT_MAIN, max_lines=5) + 16
        self._option_hitboxes = {}
        for idx, option in enumerate(question.options):
            row = pygame.Rect(rect.x, y, rect.w, 40)
            selected = snap.selected_option == idx
            pygame.draw.rect(surface, ACTIVE_BG if selected else (9, 20, 106), row)
            pygame.draw.rect(surface, (62, 84, 152), row, 1)
            label = _fit_label(self._font, f"{chr(ord('A') + idx)}. {option}", row.w - 20)
            text = self._font.render(label, True, ACTIVE_TEXT if selected else TEXT_MAIN)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            self._option_hitboxes[idx] = row
            y += 48

        mark = "Marked for review (M to unmark)" if snap.is_marked else "M: mark for review"
        surface.blit(self._small_font.render(mark, True, WARN if snap.is_marked else TEXT_MUTED), (rect.x, y + 8))
        hint = "Left/Right: navigate  |  S: submit  |  Esc: leave"
        foot = self._small_font.render(hint, True, TEXT_MUTED)
        surface.blit(foot, (rect.x, rect.bottom - foot.get_height()))

    def _render_sidebar(self, surface: pygame.Surface, rect: pygame.Rect, snap: SessionSnapshot) -> None:
        pygame.draw.rect(surface, (6, 13, 92), rect)
        pygame.draw.rect(surface, (78, 102, 170), rect, 1)

        timer = self._timer_font.render(snap.time_text, True, BAD if snap.low_time else TEXT_MAIN)
        surface.blit(timer, timer.get_rect(midtop=(rect.centerx, rect.y + 10)))
        y = rect.y + 10 + timer.get_height() + 4

        status = self._sim.driver_status()
        if status is not None and status.stalled:
            stalled = self._small_font.render("Timer stalled", True, WARN)
            surface.blit(stalled, stalled.get_rect(midtop=(rect.centerx, y)))
            y += stalled.get_height() + 4

        counts = f"Answered {snap.answered_count}  |  Marked {snap.marked_count}"
        surface.blit(self._small_font.render(counts, True, TEXT_MUTED), (rect.x + 10, y + 6))
        y += 34

        cols = 5
        cell = max(24, min(40, (rect.w - 20 - (cols - 1) * 6) // cols))
        self._nav_hitboxes = {}
        for qs in snap.question_states:
            r, c = divmod(qs.index, cols)
            box = pygame.Rect(rect.x + 10 + c * (cell + 6), y + r * (cell + 6), cell, cell)
            if qs.current:
                fill = ACTIVE_BG
            elif qs.answered:
                fill = (40, 120, 70)
            else:
                fill = (9, 20, 106)
            pygame.draw.rect(surface, fill, box)
            pygame.draw.rect(surface, WARN if qs.marked else (62, 84, 152), box, 2 if qs.marked else 1)
            num = self._small_font.render(str(qs.index + 1), True, ACTIVE_TEXT if qs.current else TEXT_MAIN)
            surface.blit(num, num.get_rect(center=box.center))
            self._nav_hitboxes[qs.index] = box

    def _render_confirm(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        w, h = surface.get_size()
        box = pygame.Rect(0, 0, min(560, w - 40), 150)
        box.center = (w // 2, h // 2)
        pygame.draw.rect(surface, HEADER_BG, box)
        pygame.draw.rect(surface, BORDER, box, 2)
        if self._confirm == "submit":
            line1 = "Submit the test?"
            line2 = f"You have answered {snap.answered_count} of {snap.total_questions} questions."
        else:
            line1 = "Leave the test?"
            line2 = "Your answers will be discarded."
        surface.blit(self._font.render(line1, True, TEXT_MAIN), (box.x + 20, box.y + 20))
        surface.blit(self._small_font.render(line2, True, TEXT_MUTED), (box.x + 20, box.y + 60))
        surface.blit(self._small_font.render("Y / Enter: yes    N / Esc: no", True, TEXT_MUTED), (box.x + 20, box.y + 105))


class ResultsScreen:
    def __init__(self, app: App, sim: Simulator, *, on_retake: Callable[[], None]) -> None:
        self._app = app
        self._sim = sim
        self._on_retake = on_retake
        self._scroll = 0
        self._font = pygame.font.Font(None, 30)
        self._small_font = pygame.font.Font(None, 24)
        self._big_font = pygame.font.Font(None, 72)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_r:
            self._on_retake()
        elif event.key in (pygame.K_h, pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._sim.end_test()
            self._app.pop()
        elif event.key == pygame.K_DOWN:
            self._scroll += 1
        elif event.key == pygame.K_UP:
            self._scroll = max(0, self._scroll - 1)

    def render(self, surface: pygame.Surface) -> None:
        session = self._sim.session
        result = session.result
        content = _draw_frame(surface, "Test Completed", "RESULTS", self._small_font)
        if result is None or session.question_set is None:
            return

        level = performance_level(result.percentage)
        pct = self._big_font.render(f"{result.percentage}%", True, TEXT_MAIN)
        surface.blit(pct, (content.x + 8, content.y))
        y = content.y + pct.get_height() + 4
        how = "time expired" if result.auto_submitted else "submitted"
        lines = [
            f"{level.label}  -  {result.score} of {result.total_questions} correct",
            f"Time taken {format_time(result.time_taken_s)} ({how})",
            "Saved to history" if self._sim.is_saved(result) else "Saving to history pending...",
        ]
        for line in lines:
            surface.blit(self._small_font.render(line, True, TEXT_MUTED), (content.x + 8, y))
            y += self._small_font.get_linesize() + 2

        y += 8
        for category in Category:
            cs = result.category_scores.get(category.value)
            if cs is None:
                continue
            text = f"{category.display_name}: {cs.correct}/{cs.total} ({cs.percentage}%)"
            surface.blit(self._font.render(text, True, TEXT_MAIN), (content.x + 8, y))
            y += self._font.get_linesize() + 2

        y += 10
        reviews = review_answers(result.answers, session.question_set)
        self._scroll = min(self._scroll, max(0, len(reviews) - 1))
        line_h = self._small_font.get_linesize() + 2
        for review in reviews[self._scroll :]:
            if y + line_h > content.bottom - 30:
                break
            chosen = "-" if review.chosen_index is None else chr(ord("A") + review.chosen_index)
            correct = chr(ord("A") + review.correct_index)
            text = f"{review.index + 1}. [{chosen}/{correct}] {review.prompt}"
            color = GOOD if review.is_correct else BAD
            surface.blit(self._small_font.render(_fit_label(self._small_font, text, content.w - 16), True, color), (content.x + 8, y))
            y += line_h

        foot = self._small_font.render("R: retake  |  H/Esc: home  |  Up/Down: scroll review", True, TEXT_MUTED)
        surface.blit(foot, foot.get_rect(midbottom=(content.centerx, content.bottom)))


class ProgressScreen:
    def __init__(self, app: App, sim: Simulator) -> None:
        self._app = app
        self._sim = sim
        self._font = pygame.font.Font(None, 30)
        self._small_font = pygame.font.Font(None, 24)
        self._summary = summarize(sim.history())

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "Progress", "HISTORY", self._small_font)
        s = self._summary
        if not s.has_data:
            msg = self._font.render("No tests attempted yet. Take your first practice test.", True, TEXT_MAIN)
            surface.blit(msg, (content.x + 8, content.y + 8))
            return

        lines = [
            f"Tests taken: {s.tests_taken}",
            f"Average score: {s.average_percentage}%",
            f"Best score: {s.best_percentage}%",
            f"Average time: {format_time(s.average_time_taken_s)}",
            "Trend: " + "  ".join(f"{p}%" for p in s.trend[-10:]),
            "",
            "Latest category performance:",
        ]
        for category in Category:
            if category.value in s.latest_categories:
                lines.append(f"  {category.display_name}: {s.latest_categories[category.value]}%")

        y = content.y + 8
        for line in lines:
            surface.blit(self._font.render(line, True, TEXT_MAIN), (content.x + 8, y))
            y += self._font.get_linesize() + 4


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    simulator: Simulator | None = None,
) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    sim = simulator or build_simulator()

    pygame.init()
    pygame.display.set_caption("Aptitude Test Simulator")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    def show_results() -> None:
        app.replace(ResultsScreen(app, sim, on_retake=retake))

    def begin() -> None:
        sim.start_test()
        app.replace(ExamScreen(app, sim, on_submitted=show_results))

    def retake() -> None:
        sim.retake()
        app.replace(ExamScreen(app, sim, on_submitted=show_results))

    def open_test() -> None:
        app.push(InstructionsScreen(app, sim, on_begin=begin))

    def open_progress() -> None:
        app.push(ProgressScreen(app, sim))

    main_items = [
        MenuItem("Start Test", open_test),
        MenuItem("Progress", open_progress),
        MenuItem("Quit", app.quit),
    ]
    app.push(MenuScreen(app, "Aptitude Test Simulator", main_items, is_root=True))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            # Countdown ticks and history writes happen between frames.
            sim.pump()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        sim.end_test()
        pygame.quit()

    return 0
