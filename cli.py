#!/usr/bin/env python3
"""
Command Line Interface for VeriSQL.
Ask questions about a database in plain language and get verified answers.

MODES:
- Interactive (default): REPL, one question at a time, conversation kept
- Single question (-q): answer one question and exit
- Schema (--show-schema): print the tables and columns the model will see
"""
import sys
import argparse
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.markdown import Markdown
from rich.progress import Progress, SpinnerColumn, TextColumn

from configs import (
    ANSWER_PROTOCOL,
    EXIT_COMMANDS,
    LLM_MODEL,
    SUPPORTED_PROTOCOLS,
    VERBOSE,
    ConfigurationError,
    validate_configuration,
)
from verisql import __version__
from verisql.adapters import DatabaseConnectionError
from verisql.deps import Session, build_session, setup_logging
from verisql.models import Answer

console = Console()

PROMPT = "What would you like to know about your data?"


# ============================================================
# OUTPUT
# ============================================================

def print_header(session: Session):
    """Print the application header."""
    info_table = Table.grid(padding=(0, 2))
    info_table.add_column(style="cyan", justify="right")
    info_table.add_column(style="white")

    info_table.add_row("Database:", f"[bold]{session.adapter.db_type.value}[/bold]")
    info_table.add_row("Tables:", str(len(session.schema_cache.tables)))
    info_table.add_row("Model:", f"[green]{LLM_MODEL}[/green]")
    info_table.add_row("Protocol:", f"[magenta]{session.orchestrator.protocol}[/magenta]")

    console.print(Panel(
        info_table,
        title=f"[bold blue]VeriSQL v{__version__}[/bold blue]",
        border_style="blue",
        padding=(1, 2),
    ))

    if session.schema_cache.skipped_tables:
        skipped = ", ".join(session.schema_cache.skipped_tables)
        console.print(f"[yellow]⚠️  Skipped tables with unreadable schemas: {skipped}[/yellow]")


def print_schema(session: Session):
    """Display every cached table with its columns and foreign keys."""
    for table_name, columns in session.schema_cache.tables.items():
        table = Table(title=f"[bold cyan]{table_name}[/bold cyan]", title_justify="left")
        table.add_column("Column", style="bold")
        table.add_column("Type", style="green")
        table.add_column("References", style="magenta")
        for column in columns:
            table.add_row(column.name, column.type, str(column.foreign_key) if column.foreign_key else "")
        console.print(table)
    console.print()


def print_answer(answer: Answer):
    """Display the answer, flagged when the model could not verify it."""
    border = "green" if answer.verified else "yellow"
    title = "[bold]Answer[/bold]" if answer.verified else "[bold]Answer (unverified)[/bold]"
    console.print(Panel(
        Markdown(answer.summary_text),
        border_style=border,
        padding=(1, 2),
        title=title,
        title_align="left",
    ))
    console.print()


def ask(session: Session, question: str) -> Answer:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True
    ) as progress:
        progress.add_task(description="Querying the database...", total=None)
        return session.orchestrator.process_question(question)


# ============================================================
# MODES
# ============================================================

def interactive_mode(session: Session):
    """Keep asking for questions until an exit command or Ctrl+C."""
    exits = ", ".join(f"'{command}'" for command in EXIT_COMMANDS)
    console.print(f"[dim]Ask questions in natural language. Type {exits} to stop.[/dim]\n")

    while True:
        try:
            question = console.input(f"[bold yellow]{PROMPT}[/bold yellow] ").strip()
        except (KeyboardInterrupt, EOFError):
            console.print("\n[bold green]Goodbye! 👋[/bold green]")
            break

        if question.lower() in EXIT_COMMANDS:
            console.print("[bold green]Goodbye! 👋[/bold green]")
            break

        if not question:
            console.print("[yellow]Please enter a question.[/yellow]")
            continue

        print_answer(ask(session, question))


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="VeriSQL - Answer natural-language questions about a database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py                                   # Interactive mode
  python cli.py -q "How many artists are there?"  # Single question
  python cli.py --protocol fenced                 # Prose answers with a ```sql block
  python cli.py --show-schema                     # Print the cached schema and exit
        """
    )

    parser.add_argument(
        "-q", "--question",
        type=str,
        help="Answer a single question and exit"
    )

    parser.add_argument(
        "--protocol",
        choices=SUPPORTED_PROTOCOLS,
        default=ANSWER_PROTOCOL,
        help=f"Answer protocol (default: {ANSWER_PROTOCOL})"
    )

    parser.add_argument(
        "--show-schema",
        action="store_true",
        dest="show_schema",
        help="Print the tables and columns sent to the model, then exit"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=VERBOSE,
        help="Enable debug logging"
    )

    args = parser.parse_args()
    setup_logging("DEBUG" if args.verbose else None)

    try:
        validate_configuration()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)

    try:
        session = build_session(protocol=args.protocol)
    except DatabaseConnectionError as e:
        console.print(f"[bold red]Could not connect to the database:[/bold red] {e}")
        sys.exit(1)

    with session:
        if args.show_schema:
            print_schema(session)
            return

        print_header(session)
        if args.question:
            print_answer(ask(session, args.question))
        else:
            interactive_mode(session)


if __name__ == "__main__":
    main()
