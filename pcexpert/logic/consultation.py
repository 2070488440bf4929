"""Consultation State Machine.

Drives one consultation session:

    welcome -> budget -> usage -> [gaming] -> cpu -> rgb -> cooling
            -> generating -> result

The gaming step is only visited when usage == "gaming". Answering the
cooling question kicks off build generation. At most one generation request
is in flight at any time; further attempts while one is running are dropped.

After a build is shown the session also handles the secondary actions of the
result view: explanations, alternative lookups and accepting/reverting
alternatives. Those are not serialized; a response that arrives after a newer
request of the same kind has been issued is discarded.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from pcexpert.config_loader import ConsultationConfig, get_config
from pcexpert.expert_client import ExpertService, ExpertServiceError
from pcexpert.logic.alternatives import build_override, merge_build
from pcexpert.logic.explanation import format_explanation
from pcexpert.models import (
    AlternativeOffer,
    AlternativeOverride,
    AlternativesPanel,
    Build,
    ConsultationInputs,
    ExplanationResult,
    TraceEntry,
)

logger = logging.getLogger(__name__)


class Step(str, Enum):
    WELCOME = "welcome"
    BUDGET = "budget"
    USAGE = "usage"
    GAMING = "gaming"
    CPU = "cpu"
    RGB = "rgb"
    COOLING = "cooling"
    GENERATING = "generating"
    RESULT = "result"


QUESTION_STEPS = (Step.BUDGET, Step.USAGE, Step.GAMING, Step.CPU, Step.RGB, Step.COOLING)

# Which ConsultationInputs field each question step answers.
STEP_FIELDS = {
    Step.BUDGET: "budget",
    Step.USAGE: "usage",
    Step.GAMING: "gaming_level",
    Step.CPU: "cpu_preference",
    Step.RGB: "rgb_importance",
    Step.COOLING: "cooling_preference",
}

# (current step, answered field) -> next step
TRANSITIONS = {
    (Step.BUDGET, "budget"): Step.USAGE,
    (Step.USAGE, "usage"): Step.CPU,
    (Step.GAMING, "gaming_level"): Step.CPU,
    (Step.CPU, "cpu_preference"): Step.RGB,
    (Step.RGB, "rgb_importance"): Step.COOLING,
    (Step.COOLING, "cooling_preference"): Step.GENERATING,
}

# Value-dependent exceptions to TRANSITIONS.
BRANCHES = {
    (Step.USAGE, "usage", "gaming"): Step.GAMING,
}

GENERATION_FIELD = "cooling_preference"


class ConsultationError(Exception):
    """Base error for consultation flow problems."""


class InvalidTransitionError(ConsultationError):
    """An answer or action does not fit the current step."""


def next_step(step: Step, field: str, value: str) -> Step:
    """Look up the step that follows answering ``field`` with ``value``."""
    branch = BRANCHES.get((step, field, value))
    if branch is not None:
        return branch
    try:
        return TRANSITIONS[(step, field)]
    except KeyError:
        raise InvalidTransitionError(f"Cannot answer '{field}' in step '{step.value}'") from None


class ConsultationSession:
    """Stateful orchestrator for one consultation.

    Args:
        service: the expert system collaborator (see ExpertService).
        config: consultation configuration; defaults to the loaded singleton.
        notify: called with user-facing error messages. Defaults to logging.
    """

    def __init__(
        self,
        service: ExpertService,
        config: Optional[ConsultationConfig] = None,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self.service = service
        self.config = config if config is not None else get_config()
        self._notify = notify

        self._generation_lock = asyncio.Lock()
        # Bumped by restart(); a generation started in an older epoch is dropped.
        self._epoch = 0
        # Latest request id per secondary action, for last-response-wins.
        self._request_seq: dict[str, int] = {"explain": 0, "alternatives": 0}

        self._reset()

    def _reset(self):
        self.step: Step = Step.WELCOME
        self.history: list[Step] = [Step.WELCOME]
        self.inputs = ConsultationInputs()
        self.build: Optional[Build] = None
        self.original_build: Optional[Build] = None
        self.trace: list[TraceEntry] = []
        self.chosen_alternatives: dict[str, AlternativeOverride] = {}
        self.expert_message: str = ""
        self.loading: bool = False
        self.last_error: Optional[str] = None
        self.explanation: Optional[ExplanationResult] = None
        self.explanation_error: Optional[str] = None
        self.selected_component: Optional[str] = None
        self.alternatives: Optional[AlternativesPanel] = None

    # ------------------------------------------------------------------
    # Questionnaire
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self._generation_lock.locked()

    @property
    def current_field(self) -> Optional[str]:
        return STEP_FIELDS.get(self.step)

    def _enter(self, step: Step):
        logger.debug(f"Step {self.step.value} -> {step.value}")
        self.step = step
        self.history.append(step)
        message = self.config.expert_message(step.value)
        if message:
            self.expert_message = message

    def _report(self, message: str):
        self.last_error = message
        if self._notify is not None:
            self._notify(message)
        else:
            logger.warning(message)

    def start(self):
        """Leave the welcome screen and ask the first question."""
        if self.step != Step.WELCOME:
            raise InvalidTransitionError(f"Consultation already started (step '{self.step.value}')")
        self._enter(Step.BUDGET)

    async def answer(self, field: str, value: str) -> Optional[Build]:
        """Record an answer and move to the next step.

        Answers arriving while a build is being generated are ignored.
        Answering the last question generates the build and returns it
        (None if generation failed or was dropped).
        """
        if self.loading or self.in_flight:
            logger.debug(f"Answer {field}={value!r} ignored: generation in progress")
            return None

        target = next_step(self.step, field, value)
        allowed = [o.value for o in self.config.options_for(self.step.value)]
        if allowed and value not in allowed:
            raise InvalidTransitionError(f"'{value}' is not an option for step '{self.step.value}'")
        setattr(self.inputs, field, value)

        if field == GENERATION_FIELD:
            # Snapshot taken after the update so the new answer is included.
            return await self.generate_build(self.inputs.model_copy())

        self._enter(target)
        return None

    async def generate_build(self, inputs: Optional[ConsultationInputs] = None) -> Optional[Build]:
        """Request a build from the expert system (single-flight).

        Returns the generated build, or None when the call was dropped
        because another generation is running, or when generation failed
        (the session is then back at welcome with ``last_error`` set).
        A result that arrives after restart() is discarded.
        """
        if self._generation_lock.locked():
            logger.debug("generate_build ignored: already in flight")
            return None

        epoch = self._epoch
        async with self._generation_lock:
            self.loading = True
            self._enter(Step.GENERATING)
            snapshot = (inputs if inputs is not None else self.inputs).model_copy()
            try:
                try:
                    build = await self.service.generate(snapshot)
                except ExpertServiceError as e:
                    trace = await self._fetch_trace_best_effort()
                    if self._restarted_since(epoch):
                        return None
                    self.build = None
                    self.original_build = None
                    if trace is not None:
                        self.trace = trace
                    self._report(f"Error generating build: {e.message or 'Unknown error'}")
                    self._enter(Step.WELCOME)
                    return None

                if self._restarted_since(epoch):
                    return None
                trace = await self.service.fetch_trace()

                delay = self.config.generation.min_display_delay_s
                if delay > 0:
                    await asyncio.sleep(delay)
                if self._restarted_since(epoch):
                    return None

                self.build = build
                self.original_build = build.model_copy(deep=True)
                self.trace = trace
                self._enter(Step.RESULT)
                logger.info(f"Build ready: ${self.build.total_cost:.0f}, {len(self.trace)} trace steps")
                return self.build
            except Exception as e:
                if self._restarted_since(epoch):
                    return None
                logger.error(f"Build generation failed: {e}")
                self.build = None
                self.original_build = None
                self._report(f"Error: {e}")
                self._enter(Step.WELCOME)
                return None
            finally:
                if self._epoch == epoch:
                    self.loading = False

    async def _fetch_trace_best_effort(self) -> Optional[list[TraceEntry]]:
        try:
            return await self.service.fetch_trace()
        except Exception as e:
            logger.debug(f"Trace fetch after failed generation ignored: {e}")
            return None

    def _restarted_since(self, epoch: int) -> bool:
        if self._epoch == epoch:
            return False
        logger.info("Generation result discarded: consultation was restarted")
        return True

    def restart(self):
        """Drop everything from this consultation and go back to welcome.

        Pending explanation and alternatives responses become stale, and a
        generation still in flight no longer touches the session.
        """
        logger.info("Restarting consultation")
        self._epoch += 1
        for purpose in self._request_seq:
            self._request_seq[purpose] += 1
        # The old lock stays with the abandoned request.
        self._generation_lock = asyncio.Lock()
        self._reset()

    # ------------------------------------------------------------------
    # Result view
    # ------------------------------------------------------------------

    def _next_request(self, purpose: str) -> int:
        self._request_seq[purpose] += 1
        return self._request_seq[purpose]

    def _is_current(self, purpose: str, request_id: int) -> bool:
        return self._request_seq[purpose] == request_id

    async def explain(self, component: str) -> Optional[ExplanationResult]:
        """Ask why a component was chosen and normalize the answer."""
        request_id = self._next_request("explain")
        try:
            raw = await self.service.explain(component, "why")
        except Exception as e:
            if self._is_current("explain", request_id):
                logger.warning(f"Explain '{component}' failed: {e}")
                self.explanation_error = str(e)
            return None

        if not self._is_current("explain", request_id):
            logger.debug(f"Stale explanation for '{component}' discarded")
            return None

        parsed = format_explanation(raw)
        self.explanation = ExplanationResult(
            component=component,
            raw_text=raw or "",
            human_text=parsed.human_text,
            confidence=parsed.confidence,
        )
        self.explanation_error = None
        self.selected_component = component
        return self.explanation

    def dismiss_explanation(self):
        self.explanation = None
        self.explanation_error = None

    async def fetch_alternatives(self, component: str) -> Optional[AlternativesPanel]:
        """Open the alternatives panel for a component and fill it."""
        request_id = self._next_request("alternatives")
        self.alternatives = AlternativesPanel(component=component, loading=True)

        try:
            items = await self.service.list_alternatives(component)
            panel = AlternativesPanel(component=component, items=list(items))
        except ExpertServiceError as e:
            panel = AlternativesPanel(component=component, items=[], error=e.message)
        except Exception as e:
            panel = AlternativesPanel(component=component, items=[], error=str(e))

        if not self._is_current("alternatives", request_id):
            logger.debug(f"Stale alternatives for '{component}' discarded")
            return None

        if panel.error:
            logger.warning(f"Alternatives for '{component}' failed: {panel.error}")
        self.alternatives = panel
        return panel

    def close_alternatives(self):
        self.alternatives = None

    def choose_alternative(self, offer: AlternativeOffer) -> Build:
        """Accept an offer from the open panel and rebuild the working build."""
        if self.alternatives is None:
            raise InvalidTransitionError("No alternatives panel is open")
        if self.original_build is None:
            raise InvalidTransitionError("No build to customize")

        component = self.alternatives.component
        original_component = self.original_build.component(component)
        chosen = dict(self.chosen_alternatives)
        chosen[component] = build_override(offer, original_component)

        self.chosen_alternatives = chosen
        self.build = merge_build(self.original_build, chosen)
        self.close_alternatives()
        logger.info(f"Using alternative for {component}: {offer.name}")
        return self.build

    def revert_alternative(self, component: str) -> Optional[Build]:
        """Go back to the originally recommended part for a component."""
        chosen = dict(self.chosen_alternatives)
        chosen.pop(component, None)
        self.chosen_alternatives = chosen
        if self.original_build is not None:
            self.build = merge_build(self.original_build, chosen)
        return self.build
