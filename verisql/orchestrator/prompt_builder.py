"""
Prompt assembly for the question-answering loop.

The system prompt is rebuilt on every attempt from cached data only (no
I/O), so for a fixed schema cache it is a pure function of the error
context passed in.
"""
from typing import Dict, List, Optional

from verisql.adapters import DatabaseType


ROLE_PREAMBLE = """You have access to a {dialect} database.
Use your knowledge of SQL to write a query that answers the user's question.
The user will execute the query and share the results with you."""

QUERY_GUIDELINES = """Query guidelines:
1. Only write read-only statements: SELECT, or WITH ... SELECT. Never modify data or schema.
2. Write exactly one SQL statement per response.
3. Use only the tables and columns listed in the schema above.
4. If you are unsure what a table or column contains, first run a small exploratory query such as SELECT ... LIMIT 5.
5. For complex questions, break the problem into steps and check each step with a query before combining them."""

STRUCTURED_RESPONSE_INSTRUCTIONS = """Response format:
Respond with a single JSON object and nothing else:
{"sqlQuery": "<SQL query>", "isVerified": <true or false>, "answerSummary": "<human-readable answer>"}
Use the query results to verify that the query is correct.
If there are no query results yet, your answer is not verified.
If the query results actually answer the question, set isVerified to true and give a good human-readable answer.
You can use the results to refine your query if your previous answer was insufficient.
Always include the SQL query in your response.
If the user tells you that a query failed, analyze the error and respond with a different query."""

FENCED_RESPONSE_INSTRUCTIONS = """Response format:
Answer in plain prose. When you need data from the database, include exactly one SQL statement
in a fenced ```sql block; it will be executed and the results shared with you.
If the question can be answered without querying the database, answer directly without a SQL block."""

DIALECT_NAMES = {
    DatabaseType.POSTGRES: "PostgreSQL",
    DatabaseType.SQLITE: "SQLite",
}


class PromptBuilder:
    """Builds the system prompt and the per-turn feedback messages."""

    def __init__(self, schema_cache, response_instructions: str = STRUCTURED_RESPONSE_INSTRUCTIONS, dialect: DatabaseType = DatabaseType.POSTGRES):
        self.schema_cache = schema_cache
        self.response_instructions = response_instructions
        self.dialect_name = DIALECT_NAMES.get(dialect, str(dialect))

    def build_system_prompt(self, prior_error_context: Optional[str] = None) -> str:
        schema_text = self.schema_cache.describe() or (
            "(No table schemas could be loaded. Use exploratory queries to discover the available tables.)"
        )
        sections = [
            ROLE_PREAMBLE.format(dialect=self.dialect_name),
            f"Database schema:\n{schema_text}",
            QUERY_GUIDELINES,
            self.response_instructions,
        ]
        if prior_error_context:
            sections.append(
                f"Your previous attempt failed: {prior_error_context}\n"
                "Revise your approach and respond with a different query."
            )
        return "\n\n".join(sections)

    def build_messages(self, history, prior_error_context: Optional[str] = None) -> List[Dict[str, str]]:
        """[system] followed by the conversation history, oldest first."""
        system = {"role": "system", "content": self.build_system_prompt(prior_error_context)}
        return [system] + history.as_messages()

    @staticmethod
    def build_result_feedback(result_text: str) -> str:
        return f"Here are the results of the SQL query: {result_text}"

    @staticmethod
    def build_failure_feedback(sql: Optional[str], error_message: str) -> str:
        text = f"The SQL query failed with this error: {error_message}"
        if sql:
            text += f"\n\nFailed query:\n```sql\n{sql}\n```"
        return text

    @staticmethod
    def build_interpretation_request(prose: str, sql: str, result_text: str) -> str:
        return (
            f"Your previous reply was:\n{prose}\n\n"
            f"The query\n```sql\n{sql}\n```\n"
            f"returned these results:\n{result_text}\n\n"
            "Using these results, give the final answer to the original question in plain prose. "
            "Do not include another SQL block."
        )
