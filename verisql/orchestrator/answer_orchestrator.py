"""
Answer Orchestrator: the question-answering loop.

STATE MACHINE
=============
    Drafting ──► Executing ──► Verifying ──► Done
        ▲                          │
        └──────── Retrying ◄───────┘

Each question is appended to the conversation history exactly once. Every
attempt then rebuilds the system prompt (carrying the last failure as error
context) and sends [system] + history to the model.

Two answer protocols are supported, one per orchestrator:

- STRUCTURED (default): the model replies with a JSON object
  {sqlQuery, isVerified, answerSummary}. A verified reply ends the loop;
  otherwise the query is executed and its results (or error) are fed back.
- FENCED: the model replies in prose with one ```sql block. The block is
  executed and one follow-up call turns the results into the final answer.

At most MAX_RETRIES + 1 attempts are made. Whatever happens, every question
leaves the history ending in an assistant turn.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from configs import ANSWER_PROTOCOL, MAX_RETRIES
from verisql.adapters import DatabaseType
from verisql.models import (
    Answer,
    ExecutionFailure,
    NoQueryFound,
    ParseFailure,
    QueryAttemptResult,
    Role,
    SqlModelResponse,
    Success,
)
from verisql.tools import ExecutionError, QueryExecutor
from .history import ConversationHistory
from .json_utils import ResponseValidationError, parse_sql_model_response
from .llm_client import LLMClient, LLMTimeoutError, json_schema_format
from .prompt_builder import (
    FENCED_RESPONSE_INSTRUCTIONS,
    STRUCTURED_RESPONSE_INSTRUCTIONS,
    PromptBuilder,
)
from .sql_extraction import extract_first_sql_block

logger = logging.getLogger(__name__)


# ============================================================
# STATE
# ============================================================

class Phase(str, Enum):
    DRAFTING = "drafting"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    RETRYING = "retrying"
    DONE = "done"


class Transition(str, Enum):
    DONE = "done"
    RETRY = "retry"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class AttemptState:
    """Index of the next attempt plus what the previous one produced."""
    attempt: int = 0
    last_result: Optional[QueryAttemptResult] = None
    last_draft: Optional[object] = None

    @property
    def error_context(self) -> Optional[str]:
        if isinstance(self.last_result, ExecutionFailure):
            return self.last_result.error_message
        return None

    def advance(self, result: Optional[QueryAttemptResult], draft: Optional[object]) -> "AttemptState":
        return replace(self, attempt=self.attempt + 1, last_result=result, last_draft=draft)


@dataclass(frozen=True)
class AttemptOutcome:
    """What one attempt produced. `answer` is set when the loop should stop."""
    result: Optional[QueryAttemptResult] = None
    draft: Optional[object] = None
    answer: Optional[Answer] = None


def decide_next(attempt: int, result: Optional[QueryAttemptResult], max_retries: int, answered: bool = False) -> Transition:
    """
    Pure transition function applied after every attempt.

    Args:
        attempt: 0-based index of the attempt that just finished
        result: Its QueryAttemptResult (None when it answered without executing)
        max_retries: Retries allowed after the first attempt
        answered: True when the attempt produced a final answer
    """
    if answered or isinstance(result, (NoQueryFound, ParseFailure)):
        return Transition.DONE
    if attempt >= max_retries:
        return Transition.EXHAUSTED
    return Transition.RETRY


def apology(attempts: int, error_message: str) -> str:
    return (
        f"I apologize, but I was unable to successfully query the database after "
        f"{attempts} attempts. The last error was: {error_message}"
    )


# ============================================================
# BASE ORCHESTRATOR
# ============================================================

class AnswerOrchestrator(ABC):
    """
    Drives one question at a time through draft / execute / verify attempts.

    Subclasses implement a single attempt (`_attempt`) and what to return
    once retries run out (`_exhausted`).
    """

    protocol: str = ""

    def __init__(
        self,
        chat: LLMClient,
        executor: QueryExecutor,
        prompt_builder: PromptBuilder,
        history: Optional[ConversationHistory] = None,
        max_retries: int = MAX_RETRIES,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self.chat = chat
        self.executor = executor
        self.prompt_builder = prompt_builder
        self.history = history if history is not None else ConversationHistory()
        self.max_retries = max_retries

    def process_question(self, question: str) -> Answer:
        """
        Answer one natural-language question.

        Never raises for model or database problems: failures come back as
        an Answer whose text explains what went wrong.
        """
        logger.info("Question (%s protocol): %s", self.protocol, question)
        self.history.append(Role.USER, question)

        try:
            answer = self._run()
        except Exception as e:
            logger.exception("Unhandled error while answering question")
            answer = Answer(summary_text=f"An error occurred: {e}")

        self._close_exchange(answer.summary_text)
        self._enter(Phase.DONE, None)
        return answer

    def _run(self) -> Answer:
        state = AttemptState()
        while True:
            logger.info("Attempt %d/%d", state.attempt + 1, self.max_retries + 1)
            outcome = self._attempt(state)
            transition = decide_next(
                state.attempt, outcome.result, self.max_retries, answered=outcome.answer is not None
            )
            next_state = state.advance(outcome.result, outcome.draft)

            if transition == Transition.DONE:
                return outcome.answer
            if transition == Transition.EXHAUSTED:
                logger.warning("Giving up after %d attempts", next_state.attempt)
                return self._exhausted(next_state)

            self._enter(Phase.RETRYING, state.attempt)
            logger.info("Retrying: %s", next_state.error_context or "answer not verified yet")
            state = next_state

    def _close_exchange(self, text: str) -> None:
        """Make sure the exchange ends with an assistant turn."""
        last = self.history.last()
        if last is None or last.role == Role.USER:
            self.history.append(Role.ASSISTANT, text)

    def _draft(self, state: AttemptState, response_format=None) -> str:
        self._enter(Phase.DRAFTING, state.attempt)
        messages = self.prompt_builder.build_messages(self.history, state.error_context)
        response = self.chat.chat(messages, response_format=response_format)
        logger.debug("Model %s answered in %.0fms", response.model, response.elapsed_ms)
        return response.content

    def _execute(self, sql: str, state: AttemptState) -> QueryAttemptResult:
        self._enter(Phase.EXECUTING, state.attempt)
        try:
            result_text = self.executor.execute(sql)
        except ExecutionError as e:
            logger.warning("Query failed: %s", e.message)
            return ExecutionFailure(sql=sql, error_message=e.message)
        return Success(sql=sql, result_text=result_text)

    @staticmethod
    def _enter(phase: Phase, attempt: Optional[int]) -> None:
        if attempt is None:
            logger.debug("Phase: %s", phase.value)
        else:
            logger.debug("Phase: %s (attempt %d)", phase.value, attempt + 1)

    @abstractmethod
    def _attempt(self, state: AttemptState) -> AttemptOutcome:
        pass

    @abstractmethod
    def _exhausted(self, state: AttemptState) -> Answer:
        pass


# ============================================================
# STRUCTURED PROTOCOL
# ============================================================

class StructuredAnswerOrchestrator(AnswerOrchestrator):
    """JSON replies {sqlQuery, isVerified, answerSummary}, decoded exactly once."""

    protocol = "structured"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.response_format = json_schema_format("sql_model_response", SqlModelResponse.json_schema())

    def _attempt(self, state: AttemptState) -> AttemptOutcome:
        try:
            raw = self._draft(state, response_format=self.response_format)
        except LLMTimeoutError as e:
            logger.warning("Model call timed out: %s", e)
            return AttemptOutcome(result=ExecutionFailure(sql=None, error_message=str(e)))

        self.history.append(Role.ASSISTANT, raw)

        try:
            reply = parse_sql_model_response(raw)
        except ResponseValidationError as e:
            logger.warning("Could not decode model reply: %s", e)
            failure = ParseFailure(raw_response_text=raw, error_message=str(e))
            text = f"Could not extract SQL from this response: {raw} because of error: {e}"
            return AttemptOutcome(result=failure, answer=Answer(summary_text=text))

        if reply.is_verified:
            self._enter(Phase.VERIFYING, state.attempt)
            logger.info("Model marked its answer as verified")
            sql = reply.sql_query.strip() or None
            return AttemptOutcome(
                draft=reply,
                answer=Answer(summary_text=reply.format_answer(), verified=True, sql=sql),
            )

        sql = reply.sql_query.strip()
        if not sql:
            result = ExecutionFailure(sql=None, error_message="The response did not contain a SQL query")
        else:
            result = self._execute(sql, state)

        if isinstance(result, Success):
            self.history.append(Role.USER, self.prompt_builder.build_result_feedback(result.result_text))
        else:
            self.history.append(Role.USER, self.prompt_builder.build_failure_feedback(result.sql, result.error_message))

        self._enter(Phase.VERIFYING, state.attempt)
        return AttemptOutcome(result=result, draft=reply)

    def _exhausted(self, state: AttemptState) -> Answer:
        """
        Answer once the retry budget is spent.

        A failed last attempt gets the apology. A last attempt that executed
        fine but was never marked verified does NOT get the apology: its reply
        is returned flagged "(Answer is not verified.)", since the query ran
        and its summary is still the best answer available.
        """
        if isinstance(state.last_result, Success) and isinstance(state.last_draft, SqlModelResponse):
            return Answer(
                summary_text=state.last_draft.format_answer(),
                verified=False,
                sql=state.last_result.sql,
            )
        error = getattr(state.last_result, "error_message", "unknown error")
        return Answer(summary_text=apology(self.max_retries + 1, error))


# ============================================================
# FENCED PROTOCOL
# ============================================================

class FencedAnswerOrchestrator(AnswerOrchestrator):
    """Prose replies with one ```sql block, interpreted by one follow-up call."""

    protocol = "fenced"

    def _attempt(self, state: AttemptState) -> AttemptOutcome:
        try:
            prose = self._draft(state)
        except LLMTimeoutError as e:
            logger.warning("Model call timed out: %s", e)
            return AttemptOutcome(result=ExecutionFailure(sql=None, error_message=str(e)))

        self.history.append(Role.ASSISTANT, prose)

        sql = extract_first_sql_block(prose)
        if sql is None:
            logger.info("No SQL block in reply; returning it as the answer")
            return AttemptOutcome(
                result=NoQueryFound(raw_response_text=prose),
                draft=prose,
                answer=Answer(summary_text=prose, verified=False),
            )

        result = self._execute(sql, state)
        if isinstance(result, ExecutionFailure):
            self.history.append(Role.USER, self.prompt_builder.build_failure_feedback(sql, result.error_message))
            return AttemptOutcome(result=result, draft=prose)

        self._enter(Phase.VERIFYING, state.attempt)
        self.history.append(
            Role.USER,
            self.prompt_builder.build_interpretation_request(prose, sql, result.result_text),
        )
        try:
            final = self.chat.chat(self.prompt_builder.build_messages(self.history))
        except LLMTimeoutError as e:
            logger.warning("Interpretation call timed out: %s", e)
            return AttemptOutcome(result=ExecutionFailure(sql=sql, error_message=str(e)), draft=prose)

        self.history.append(Role.ASSISTANT, final.content)
        return AttemptOutcome(
            result=result,
            draft=prose,
            answer=Answer(summary_text=final.content, verified=True, sql=sql),
        )

    def _exhausted(self, state: AttemptState) -> Answer:
        error = getattr(state.last_result, "error_message", "unknown error")
        return Answer(summary_text=apology(self.max_retries + 1, error))


# ============================================================
# FACTORY
# ============================================================

ORCHESTRATORS = {
    StructuredAnswerOrchestrator.protocol: (StructuredAnswerOrchestrator, STRUCTURED_RESPONSE_INSTRUCTIONS),
    FencedAnswerOrchestrator.protocol: (FencedAnswerOrchestrator, FENCED_RESPONSE_INSTRUCTIONS),
}


def create_orchestrator(
    chat: LLMClient,
    executor: QueryExecutor,
    schema_cache,
    protocol: str = ANSWER_PROTOCOL,
    dialect: DatabaseType = DatabaseType.POSTGRES,
    history: Optional[ConversationHistory] = None,
    max_retries: int = MAX_RETRIES,
) -> AnswerOrchestrator:
    """
    Build the orchestrator for an answer protocol ("structured" or "fenced").

    The prompt builder is created here so its response instructions always
    match the protocol the orchestrator decodes.
    """
    try:
        orchestrator_cls, instructions = ORCHESTRATORS[protocol]
    except KeyError:
        raise ValueError(f"Unknown answer protocol '{protocol}'. Expected one of: {', '.join(ORCHESTRATORS)}")

    builder = PromptBuilder(schema_cache, response_instructions=instructions, dialect=dialect)
    return orchestrator_cls(chat, executor, builder, history=history, max_retries=max_retries)
