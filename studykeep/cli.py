"""
CLI interface for studykeep.

Usage:
    studykeep register ada@example.com ada
    studykeep login ada@example.com
    studykeep upload notes/cells.pdf
    studykeep ask "What is the powerhouse of the cell?"
"""

import contextlib
import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import StudyKeeper
from .errors import StudyKeepError
from .logging_config import configure_quiet_mode, enable_debug_mode
from .types import IngestFile

# Configure quiet mode by default (suppress verbose library output)
# Set STUDYKEEP_VERBOSE=1 to enable debug mode via environment
if os.environ.get("STUDYKEEP_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"studykeep {version('studykeep')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    if value is not None:
        _store_override = value


def _get_store_override() -> Optional[Path]:
    return _store_override


app = typer.Typer(
    name="studykeep",
    help="Study companion: documents, questions and progress.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="STUDYKEEP_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Study companion: documents, questions and progress."""


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

StoreOption = Annotated[
    Optional[Path],
    typer.Option(
        "--store", "-s",
        envvar="STUDYKEEP_STORE_PATH",
        help="Path to the store directory (default: ~/.studykeep/)"
    )
]

TokenOption = Annotated[
    Optional[str],
    typer.Option(
        "--token", "-T",
        envvar="STUDYKEEP_TOKEN",
        help="Session token from 'studykeep login'"
    )
]

LimitOption = Annotated[
    int,
    typer.Option(
        "--limit", "-n",
        help="Maximum results to return"
    )
]

SubjectOption = Annotated[
    Optional[str],
    typer.Option(
        "--subject",
        help="Subject name"
    )
]


def _get_keeper(store: Optional[Path]) -> StudyKeeper:
    """Open the store, handling errors gracefully."""
    import atexit

    actual_store = store if store is not None else _get_store_override()
    try:
        kp = StudyKeeper(actual_store)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    # Flush sessions before interpreter shutdown
    atexit.register(kp.close)
    return kp


def _get_owner(kp: StudyKeeper, token: Optional[str]) -> str:
    if not token:
        typer.echo("Error: Not logged in. Pass --token or set STUDYKEEP_TOKEN", err=True)
        raise typer.Exit(1)
    session = kp.session(token)
    if session is None:
        typer.echo("Error: Session expired or unknown. Run 'studykeep login'", err=True)
        raise typer.Exit(1)
    return session.owner


@contextlib.contextmanager
def _reported():
    """Turn StudyKeepError into a clean message and exit status 1."""
    try:
        yield
    except StudyKeepError as e:
        typer.echo(f"Error: {e.reason or type(e).__name__}", err=True)
        raise typer.Exit(1)


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _parse_pairs(pairs: Optional[list[str]]) -> dict[str, str]:
    result = {}
    for pair in pairs or []:
        if "=" not in pair:
            typer.echo(f"Error: Expected key=value, got {pair!r}", err=True)
            raise typer.Exit(1)
        k, v = pair.split("=", 1)
        result[k.strip()] = v
    return result


# -----------------------------------------------------------------------------
# Accounts
# -----------------------------------------------------------------------------

@app.command()
def register(
    email: Annotated[str, typer.Argument(help="Email address (identifies the account)")],
    username: Annotated[str, typer.Argument(help="Display name")],
    password: Annotated[str, typer.Option(
        prompt=True, hide_input=True, confirmation_prompt=True,
        help="Account password",
    )],
    store: StoreOption = None,
):
    """Create an account."""
    kp = _get_keeper(store)
    with _reported():
        owner = kp.register(email, password, username)
    if _get_json_output():
        _echo_json({"owner": owner, "username": username})
    else:
        typer.echo(f"Registered {username} ({owner})")


@app.command()
def login(
    email: Annotated[str, typer.Argument(help="Email address")],
    password: Annotated[str, typer.Option(
        prompt=True, hide_input=True, help="Account password",
    )],
    store: StoreOption = None,
):
    """
    Log in and print a session token.

    \b
    Examples:
        export STUDYKEEP_TOKEN=$(studykeep login ada@example.com)
    """
    kp = _get_keeper(store)
    with _reported():
        result = kp.login(email, password)
    if _get_json_output():
        _echo_json({
            "token": result.token,
            "owner": result.owner,
            "username": result.username,
            "preferences": result.preferences,
        })
    else:
        typer.echo(result.token)


@app.command()
def logout(
    token: TokenOption = None,
    store: StoreOption = None,
):
    """End a session."""
    kp = _get_keeper(store)
    if not token or not kp.logout(token):
        typer.echo("No such session", err=True)
        raise typer.Exit(1)
    typer.echo("Logged out")


@app.command()
def sweep(
    store: StoreOption = None,
):
    """Remove expired sessions."""
    kp = _get_keeper(store)
    removed = kp.sweep_sessions()
    typer.echo(f"Removed {removed} expired sessions")


# -----------------------------------------------------------------------------
# Documents
# -----------------------------------------------------------------------------

@app.command()
def upload(
    files: Annotated[list[Path], typer.Argument(
        help="Documents to ingest (PDF, DOCX, HTML, text)",
        exists=True, dir_okay=False, readable=True,
    )],
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Ingest documents for later questions."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    batch = []
    for path in files:
        content = path.read_bytes()
        batch.append(IngestFile(content=content, filename=path.name, size=len(content)))
    outcomes = kp.upload_batch(owner, batch)

    if _get_json_output():
        _echo_json([o.to_dict() for o in outcomes])
    else:
        for o in outcomes:
            if o.success:
                doc = o.document
                typer.echo(f"{o.document_id}  {o.filename}  [{doc.subject}] {len(doc.chunks)} chunks")
            else:
                typer.echo(f"FAILED  {o.filename}: {o.error}", err=True)
    if not any(o.success for o in outcomes):
        raise typer.Exit(1)


@app.command()
def docs(
    token: TokenOption = None,
    store: StoreOption = None,
):
    """List ingested documents."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    documents = kp.list_documents(owner)
    if _get_json_output():
        _echo_json([d.summary() for d in documents])
        return
    for d in documents:
        typer.echo(f"{d.id}  {d.original_name}  [{d.subject}] {d.pages}p  {', '.join(d.keywords[:5])}")


@app.command("rm-doc")
def rm_doc(
    doc_id: Annotated[str, typer.Argument(help="Document ID")],
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Delete an ingested document."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        entry = kp.remove_document(owner, doc_id)
    typer.echo(f"Removed {entry.original_name}")


@app.command()
def find(
    query: Annotated[str, typer.Argument(help="Search query text")],
    limit: LimitOption = 3,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Show the document passages that best match a query."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    results = kp.retrieve(owner, query, limit)
    if _get_json_output():
        _echo_json([{
            "documentId": c.document_id,
            "documentName": c.document_name,
            "chunkId": c.chunk_id,
            "score": c.score,
            "text": c.text,
        } for c in results])
        return
    if not results:
        typer.echo("No matching passages")
    for c in results:
        typer.echo(f"[{c.score}] {c.document_name} {c.chunk_id}: {c.text[:200]}")


# -----------------------------------------------------------------------------
# Questions
# -----------------------------------------------------------------------------

@app.command()
def ask(
    question: Annotated[str, typer.Argument(help="Question to answer")],
    mode: Annotated[str, typer.Option(
        "--mode", "-m",
        help="normal, reverse, summary or quiz",
    )] = "normal",
    subject: SubjectOption = None,
    difficulty: Annotated[int, typer.Option(help="Difficulty 1-10")] = 5,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Answer a question using your documents for reference."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        result = kp.ask(owner, question, mode=mode, subject=subject, difficulty=difficulty)
    if _get_json_output():
        _echo_json(result.to_dict())
        return
    typer.echo(result.answer)
    typer.echo("")
    typer.echo(f"-- {result.source}, confidence {result.confidence}, {result.blooms_level}")
    for s in result.sources:
        typer.echo(f"   from {s['name']}")


@app.command()
def history(
    limit: LimitOption = 20,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Show recent questions and answers."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    entries = kp.history(owner, limit)
    if _get_json_output():
        _echo_json([e.to_json() for e in entries])
        return
    for e in entries:
        typer.echo(f"{e.timestamp}  Q: {e.question}")
        typer.echo(f"{' ' * len(e.timestamp)}  A: {e.answer[:200]}")


@app.command()
def analytics(
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Show study statistics."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    stats = kp.analytics(owner)
    if _get_json_output():
        _echo_json(stats.to_json())
        return
    typer.echo(f"Questions asked: {stats.questions_asked}")
    levels = ", ".join(f"{k} {v}" for k, v in stats.blooms_levels.items() if v)
    if levels:
        typer.echo(f"Bloom's levels: {levels}")
    for name, progress in stats.subject_progress.items():
        typer.echo(
            f"  {name}: {progress.questions_asked} questions, "
            f"average accuracy {progress.average_accuracy:.1f}"
        )


# -----------------------------------------------------------------------------
# Bookmarks
# -----------------------------------------------------------------------------

bookmark_app = typer.Typer(
    name="bookmark",
    help="Bookmarks: add, list, remove.",
    rich_markup_mode=None,
)
app.add_typer(bookmark_app)


@bookmark_app.command("add")
def bookmark_add(
    content: Annotated[str, typer.Argument(help="Text to keep")],
    type: Annotated[str, typer.Option("--type", help="Bookmark type")] = "note",
    subject: SubjectOption = None,
    tag: Annotated[Optional[list[str]], typer.Option(
        "--tag", "-t", help="Tag (repeatable)",
    )] = None,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Add a bookmark."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        bookmark = kp.add_bookmark(owner, content, type=type, subject=subject, tags=tag or [])
    if _get_json_output():
        _echo_json(bookmark.to_json())
    else:
        typer.echo(bookmark.id)


@bookmark_app.command("list")
def bookmark_list(
    subject: SubjectOption = None,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """List bookmarks, optionally for one subject."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    bookmarks = kp.list_bookmarks(owner, subject)
    if _get_json_output():
        _echo_json([b.to_json() for b in bookmarks])
        return
    for b in bookmarks:
        typer.echo(f"{b.id}  [{b.subject}] {b.content[:100]}")


@bookmark_app.command("remove")
def bookmark_remove(
    bookmark_id: Annotated[str, typer.Argument(help="Bookmark ID")],
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Remove a bookmark."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        kp.remove_bookmark(owner, bookmark_id)
    typer.echo("Removed")


# -----------------------------------------------------------------------------
# Flashcards
# -----------------------------------------------------------------------------

flashcard_app = typer.Typer(
    name="flashcard",
    help="Flashcards: add, list, generate, review.",
    rich_markup_mode=None,
)
app.add_typer(flashcard_app)


@flashcard_app.command("add")
def flashcard_add(
    question: Annotated[str, typer.Argument(help="Front of the card")],
    answer: Annotated[str, typer.Argument(help="Back of the card")],
    subject: SubjectOption = None,
    difficulty: Annotated[int, typer.Option(help="Difficulty 1-10")] = 5,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Create a flashcard."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        card = kp.create_flashcard(owner, question, answer, subject=subject, difficulty=difficulty)
    typer.echo(card.id)


@flashcard_app.command("list")
def flashcard_list(
    token: TokenOption = None,
    store: StoreOption = None,
):
    """List flashcards."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    deck = kp.get_flashcards(owner)
    if _get_json_output():
        _echo_json(deck.to_json())
        return
    for label, cards in (("mine", deck.user_made), ("ai", deck.ai_generated)):
        for c in cards:
            typer.echo(f"{c.id}  ({label}) [{c.subject}] Q: {c.question}  A: {c.answer}")


@flashcard_app.command("generate")
def flashcard_generate(
    doc_id: Annotated[str, typer.Argument(help="Document ID")],
    count: Annotated[int, typer.Option("--count", "-c", help="Number of cards")] = 5,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Generate flashcards from a document with the answer provider."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        cards = kp.generate_flashcards(owner, doc_id, count)
    if _get_json_output():
        _echo_json([c.to_json() for c in cards])
        return
    typer.echo(f"Generated {len(cards)} flashcards")
    for c in cards:
        typer.echo(f"  Q: {c.question}")


@flashcard_app.command("review")
def flashcard_review(
    card_id: Annotated[str, typer.Argument(help="Flashcard ID")],
    correct: Annotated[bool, typer.Option("--correct/--wrong", help="Was the answer right?")] = True,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Record a flashcard review."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        card = kp.review_flashcard(owner, card_id, correct)
    typer.echo(f"{card.correct_count}/{card.review_count} correct")


# -----------------------------------------------------------------------------
# Subjects and preferences
# -----------------------------------------------------------------------------

@app.command()
def subject(
    name: Annotated[str, typer.Argument(help="Subject name")],
    color: Annotated[Optional[str], typer.Option(help="Display color")] = None,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """Add a custom subject."""
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    with _reported():
        created = kp.add_custom_subject(owner, name, color)
    typer.echo(f"Added {created.name}")


@app.command()
def prefs(
    set_: Annotated[Optional[list[str]], typer.Option(
        "--set", help="Preference to change, key=value (repeatable)",
    )] = None,
    token: TokenOption = None,
    store: StoreOption = None,
):
    """
    Show or change preferences.

    \b
    Examples:
        studykeep prefs --set answer_length=short --set analogy_style=sports
    """
    kp = _get_keeper(store)
    owner = _get_owner(kp, token)
    updates = _parse_pairs(set_)
    with _reported():
        preferences = kp.update_preferences(owner, updates) if updates else kp.preferences(owner)
    data = preferences.to_json()
    if _get_json_output():
        _echo_json(data)
        return
    for k, v in data.items():
        if not isinstance(v, (list, dict)):
            typer.echo(f"{k}: {v}")


@app.command()
def mcp(
    store: StoreOption = None,
):
    """Start MCP stdio server for AI agent integration."""
    if store is not None:
        os.environ["STUDYKEEP_STORE_PATH"] = str(store)
    elif _get_store_override() is not None:
        os.environ["STUDYKEEP_STORE_PATH"] = str(_get_store_override())
    from .mcp import main as mcp_main
    mcp_main()


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="studykeep CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
