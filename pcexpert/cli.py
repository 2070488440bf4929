"""
Interactive terminal front end for the PC Builder expert system.

Usage:
    pc-expert
    pc-expert --api-url http://localhost:8080/api --log-level DEBUG

At the result screen type `help` for the list of commands.
"""

import argparse
import asyncio
import logging
import shutil
from typing import Awaitable, Callable, Optional

from pcexpert.config_loader import ConsultationConfig, get_config, reload_config
from pcexpert.display import (
    COMPONENT_LABELS,
    render_alternatives,
    render_build,
    render_explanation,
    render_question,
    render_trace,
)
from pcexpert.expert_client import ExpertSystemClient
from pcexpert.logic.consultation import QUESTION_STEPS, ConsultationSession, Step
from pcexpert.logic.grid import grid_columns, restart_fills_last_row

logger = logging.getLogger(__name__)

ReadLine = Callable[[str], Awaitable[str]]
Write = Callable[[str], None]

QUIT_WORDS = {"q", "quit", "exit"}

HELP_TEXT = """Commands:
  explain <component>   why the expert picked this part
  alts <component>      list alternatives for a part
  use <n>               use alternative n from the last list
  revert <component>    go back to the recommended part
  trace                 show the reasoning trace
  restart               build another PC
  quit                  leave
Components: """ + ", ".join(COMPONENT_LABELS)


async def _read_stdin(prompt: str) -> str:
    return await asyncio.to_thread(input, prompt)


class ConsultationShell:
    """Text loop around a ConsultationSession."""

    def __init__(
        self,
        session: ConsultationSession,
        read_line: ReadLine = _read_stdin,
        write: Write = print,
        width: Optional[int] = None,
    ):
        self.session = session
        self.read_line = read_line
        self.write = write
        self.width = width

    @property
    def config(self) -> ConsultationConfig:
        return self.session.config

    def _grid(self) -> tuple[int, int]:
        grid = self.config.grid
        width = self.width or shutil.get_terminal_size((grid.default_width, 24)).columns
        columns = grid_columns(width, grid.min_card_width, grid.gap)
        card_width = max(grid.min_card_width, (width - grid.gap * (columns - 1)) // columns)
        return columns, card_width

    async def run(self):
        self.write("PC Builder Expert - your AI hardware consultant\n")
        while True:
            step = self.session.step
            if step == Step.WELCOME:
                line = await self.read_line("Press Enter to start a consultation (q to quit): ")
                if line.strip().lower() in QUIT_WORDS:
                    return
                self.session.start()
            elif step in QUESTION_STEPS:
                if not await self._ask_question(step):
                    return
            elif step == Step.RESULT:
                if not await self._result_loop():
                    return
            else:
                # generating is only observed from inside answer()
                await asyncio.sleep(0)

    async def _ask_question(self, step: Step) -> bool:
        session = self.session
        options = self.config.options_for(step.value)
        self.write(render_question(step, session.inputs.usage, session.expert_message, self.config))

        line = (await self.read_line("> ")).strip()
        if line.lower() in QUIT_WORDS:
            return False
        if not line.isdigit() or not 1 <= int(line) <= len(options):
            self.write(f"Please pick a number between 1 and {len(options)}.")
            return True

        if session.current_field == "cooling_preference":
            self.write("\nAnalyzing your requirements...")
            for caption in self.config.generation.steps:
                self.write(f"  - {caption}")

        await session.answer(session.current_field, options[int(line) - 1].value)
        return True

    def _show_build(self):
        columns, card_width = self._grid()
        build = self.session.build
        self.write(render_build(build, self.session.chosen_alternatives, columns, card_width, self.config.grid.gap))
        if restart_fills_last_row(len(build.present_components()), columns):
            self.write("[restart] Build Another PC")
        else:
            self.write("\n[restart] Build Another PC")

    async def _result_loop(self) -> bool:
        session = self.session
        self.write("\nYour Perfect Build - optimized by the expert system\n")
        self._show_build()

        while True:
            line = (await self.read_line("command> ")).strip()
            if not line:
                continue
            command, _, arg = line.partition(" ")
            command, arg = command.lower(), arg.strip().lower()

            if command in QUIT_WORDS:
                return False
            if command == "help":
                self.write(HELP_TEXT)
            elif command == "restart":
                session.restart()
                return True
            elif command == "trace":
                self.write(render_trace(session.trace))
            elif command in ("explain", "alts", "revert"):
                if arg not in COMPONENT_LABELS:
                    self.write(f"Unknown component '{arg}'. Pick one of: {', '.join(COMPONENT_LABELS)}")
                    continue
                await self._component_command(command, arg)
            elif command == "use":
                self._use_alternative(arg)
            else:
                self.write("Unknown command. Type 'help' for the list.")

    async def _component_command(self, command: str, key: str):
        session = self.session
        if command == "explain":
            if key in session.chosen_alternatives:
                self.write(f"You are using an alternative for {key}; revert it to see the expert's reasoning.")
                return
            explanation = await session.explain(key)
            if explanation is not None:
                self.write(render_explanation(explanation))
            elif session.explanation_error:
                self.write(f"Could not explain {key}: {session.explanation_error}")
        elif command == "alts":
            panel = await session.fetch_alternatives(key)
            if panel is not None:
                self.write(render_alternatives(panel))
        elif command == "revert":
            if key not in session.chosen_alternatives:
                self.write(f"{key} already uses the recommended part.")
                return
            session.revert_alternative(key)
            self._show_build()

    def _use_alternative(self, arg: str):
        panel = self.session.alternatives
        if panel is None or not panel.items:
            self.write("No alternatives to choose from. Run 'alts <component>' first.")
            return
        if not arg.isdigit() or not 1 <= int(arg) <= len(panel.items):
            self.write(f"Pick an alternative between 1 and {len(panel.items)}.")
            return
        self.session.choose_alternative(panel.items[int(arg) - 1])
        self._show_build()


async def run_cli(config: ConsultationConfig, api_url: Optional[str] = None):
    base_url = api_url or config.service.api_url
    async with ExpertSystemClient(base_url, timeout=config.service.timeout_s) as client:
        session = ConsultationSession(client, config, notify=lambda message: print(f"\n! {message}\n"))
        await ConsultationShell(session).run()


def main():
    parser = argparse.ArgumentParser(description="PC Builder Expert consultation")
    parser.add_argument("--api-url", type=str, default=None, help="Expert system API base URL")
    parser.add_argument("--config", type=str, default=None, help="Path to a consultation YAML file")
    parser.add_argument("--log-level", type=str, default="WARNING", help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))

    config = reload_config(args.config) if args.config else get_config()
    try:
        asyncio.run(run_cli(config, args.api_url))
    except (KeyboardInterrupt, EOFError):
        print("\nBye!")


if __name__ == "__main__":
    main()
