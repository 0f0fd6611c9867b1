"""
Tests for the structured (JSON) answer protocol.

The chat endpoint and the database-access service are scripted fakes, so
every test controls exactly what the model says and what the query returns.
"""

import json

import pytest

from conftest import build_orchestrator, tool_error
from verisql.models import Role
from verisql.orchestrator import ConversationHistory, LLMTimeoutError


def reply(sql, verified, summary):
    return json.dumps({"sqlQuery": sql, "isVerified": verified, "answerSummary": summary})


COUNT_SQL = "SELECT COUNT(*) AS n FROM artist"
COUNT_ROWS = '[\n  {\n    "n": 3\n  }\n]'


# =============================================================================
# HAPPY PATHS
# =============================================================================

class TestVerifiedAnswers:

    def test_verified_first_reply_needs_no_query(self):
        orchestrator, chat, server = build_orchestrator("structured", [
            reply(COUNT_SQL, True, "There are 3 artists"),
        ])

        answer = orchestrator.process_question("How many artists are there?")

        assert answer.verified is True
        assert answer.sql == COUNT_SQL
        assert answer.summary_text == (
            "There are 3 artists.\n\n"
            "This was obtained using the following query:\n\n"
            f"```sql\n{COUNT_SQL}\n```"
        )
        assert len(chat.calls) == 1
        assert server.calls == []

    def test_execute_then_verify(self):
        orchestrator, chat, server = build_orchestrator(
            "structured",
            [
                reply(COUNT_SQL, False, "Probably 3 artists"),
                reply(COUNT_SQL, True, "There are 3 artists"),
            ],
            results=[COUNT_ROWS],
        )

        answer = orchestrator.process_question("How many artists are there?")

        assert answer.verified is True
        assert server.calls == [COUNT_SQL]
        assert len(chat.calls) == 2
        second_messages = chat.calls[1]["messages"]
        assert second_messages[-1] == {
            "role": "user",
            "content": f"Here are the results of the SQL query: {COUNT_ROWS}",
        }

    def test_output_schema_is_sent_with_every_call(self):
        orchestrator, chat, _ = build_orchestrator("structured", [reply(COUNT_SQL, True, "3")])

        orchestrator.process_question("How many artists?")

        response_format = chat.calls[0]["response_format"]
        assert response_format["type"] == "json_schema"
        properties = response_format["json_schema"]["schema"]["properties"]
        assert set(properties) == {"sqlQuery", "isVerified", "answerSummary"}


# =============================================================================
# MESSAGE ASSEMBLY
# =============================================================================

class TestMessageAssembly:

    def test_question_is_sent_once(self):
        orchestrator, chat, _ = build_orchestrator(
            "structured",
            [reply(COUNT_SQL, False, "maybe"), reply(COUNT_SQL, True, "3")],
            results=[COUNT_ROWS],
        )

        orchestrator.process_question("How many artists are there?")

        first = chat.calls[0]["messages"]
        assert [m["role"] for m in first] == ["system", "user"]
        assert first[1]["content"] == "How many artists are there?"
        for call in chat.calls:
            questions = [m for m in call["messages"] if m["content"] == "How many artists are there?"]
            assert len(questions) == 1

    def test_error_context_reaches_next_system_prompt(self):
        orchestrator, chat, _ = build_orchestrator(
            "structured",
            [
                reply("SELECT * FROM artists", False, "?"),
                reply("SELECT * FROM artist", False, "?"),
                reply("SELECT * FROM artist", True, "3 artists"),
            ],
            results=[tool_error('relation "artists" does not exist'), COUNT_ROWS],
        )

        orchestrator.process_question("List the artists")

        assert "Your previous attempt failed" not in chat.calls[0]["messages"][0]["content"]
        assert 'Your previous attempt failed: relation "artists" does not exist' in chat.calls[1]["messages"][0]["content"]
        # a successful execution clears the error context
        assert "Your previous attempt failed" not in chat.calls[2]["messages"][0]["content"]

    def test_failure_feedback_is_recorded_in_history(self):
        orchestrator, chat, _ = build_orchestrator(
            "structured",
            [reply("SELECT * FROM artists", False, "?"), reply("SELECT * FROM artist", True, "done")],
            results=[tool_error('relation "artists" does not exist')],
        )

        orchestrator.process_question("List the artists")

        feedback = chat.calls[1]["messages"][-1]
        assert feedback["role"] == "user"
        assert 'relation "artists" does not exist' in feedback["content"]


# =============================================================================
# TERMINAL FAILURES
# =============================================================================

class TestParseFailure:

    def test_undecodable_reply_is_terminal(self):
        orchestrator, chat, server = build_orchestrator("structured", ["I think you want SELECT 1"])

        answer = orchestrator.process_question("Anything?")

        assert answer.verified is False
        assert answer.summary_text.startswith("Could not extract SQL from this response: I think you want SELECT 1")
        assert "because of error:" in answer.summary_text
        assert len(chat.calls) == 1
        assert server.calls == []

    def test_wrongly_typed_field_is_terminal(self):
        raw = json.dumps({"sqlQuery": COUNT_SQL, "isVerified": "true", "answerSummary": "3"})
        orchestrator, chat, server = build_orchestrator("structured", [raw])

        answer = orchestrator.process_question("How many?")

        assert answer.summary_text.startswith("Could not extract SQL from this response:")
        assert server.calls == []


class TestExhaustion:

    def test_apology_after_repeated_failures(self):
        orchestrator, chat, server = build_orchestrator(
            "structured",
            [reply("SELECT * FROM nope", False, "?")] * 3,
            results=[tool_error("boom 1"), tool_error("boom 2"), tool_error("boom 3")],
            max_retries=2,
        )

        answer = orchestrator.process_question("Anything?")

        assert answer.summary_text == (
            "I apologize, but I was unable to successfully query the database after "
            "3 attempts. The last error was: boom 3"
        )
        assert answer.verified is False
        assert len(chat.calls) == 3
        assert len(server.calls) == 3

    def test_unverified_success_is_returned_flagged(self):
        orchestrator, chat, server = build_orchestrator(
            "structured",
            [reply(COUNT_SQL, False, "About 3 artists")] * 2,
            results=[COUNT_ROWS, COUNT_ROWS],
            max_retries=1,
        )

        answer = orchestrator.process_question("How many artists?")

        assert answer.verified is False
        assert answer.sql == COUNT_SQL
        assert answer.summary_text.startswith("About 3 artists.")
        assert answer.summary_text.endswith("(Answer is not verified.)")

    def test_zero_retries_means_one_attempt(self):
        orchestrator, chat, _ = build_orchestrator(
            "structured",
            [reply("SELECT * FROM nope", False, "?")],
            results=[tool_error("no such table: nope")],
            max_retries=0,
        )

        answer = orchestrator.process_question("Anything?")

        assert len(chat.calls) == 1
        assert "after 1 attempts" in answer.summary_text


# =============================================================================
# RETRYABLE CONDITIONS
# =============================================================================

class TestRetryableConditions:

    def test_blank_sql_counts_as_failure_without_db_call(self):
        orchestrator, chat, server = build_orchestrator(
            "structured",
            [reply("   ", False, "no idea"), reply(COUNT_SQL, True, "3 artists")],
        )

        answer = orchestrator.process_question("How many artists?")

        assert answer.verified is True
        assert server.calls == []
        assert "did not contain a SQL query" in chat.calls[1]["messages"][0]["content"]

    def test_write_statement_is_rejected_before_execution(self):
        orchestrator, chat, server = build_orchestrator(
            "structured",
            [reply("DELETE FROM artist", False, "done"), reply(COUNT_SQL, True, "3 artists")],
        )

        orchestrator.process_question("Remove all artists")

        assert server.calls == []
        assert "Statement rejected" in chat.calls[1]["messages"][0]["content"]

    def test_model_timeout_is_retried_without_history_turn(self):
        orchestrator, chat, server = build_orchestrator(
            "structured",
            [LLMTimeoutError("Model fake did not respond within 120s"), reply(COUNT_SQL, True, "3 artists")],
        )

        answer = orchestrator.process_question("How many artists?")

        assert answer.verified is True
        second = chat.calls[1]["messages"]
        assert [m["role"] for m in second] == ["system", "user"]
        assert "did not respond within 120s" in second[0]["content"]


# =============================================================================
# BOUNDARY AND HISTORY
# =============================================================================

class TestBoundaryAndHistory:

    def test_unexpected_exception_becomes_error_answer(self):
        orchestrator, _, _ = build_orchestrator("structured", [RuntimeError("connection reset")])

        answer = orchestrator.process_question("Anything?")

        assert answer.summary_text == "An error occurred: connection reset"
        assert answer.verified is False

    @pytest.mark.parametrize("replies, results", [
        ([reply(COUNT_SQL, True, "3")], []),
        (["not json"], []),
        ([reply("SELECT 1", False, "?")] * 2, [tool_error("e1"), tool_error("e2")]),
        ([RuntimeError("boom")], []),
    ])
    def test_every_question_ends_with_assistant_turn(self, replies, results):
        orchestrator, _, _ = build_orchestrator("structured", replies, results=results, max_retries=1)

        orchestrator.process_question("Anything?")

        assert orchestrator.history.last().role == Role.ASSISTANT

    def test_history_stays_bounded_across_questions(self):
        history = ConversationHistory(4, "pair")
        orchestrator, _, _ = build_orchestrator(
            "structured",
            [reply(COUNT_SQL, True, f"answer {i}") for i in range(5)],
            history=history,
        )

        for i in range(5):
            orchestrator.process_question(f"question {i}")

        turns = history.as_list()
        assert len(turns) == 4
        assert [t.role for t in turns] == ["user", "assistant", "user", "assistant"]
        assert turns[0].content == "question 3"
