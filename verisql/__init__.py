"""
VeriSQL Package

Answers natural-language questions about a relational database:
- orchestrator: question-answering loop (draft, execute, verify, retry)
- tools: database-access service, query executor, schema cache
- adapters: SQLite / PostgreSQL connections
- models: data models and schemas
"""

__version__ = "1.0.0"
