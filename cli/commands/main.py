"""Main CLI interface using Typer."""

import asyncio
import json
import re
import typer
from pathlib import Path
from typing import Any, Dict, List, Optional
from rich.console import Console
from rich.table import Table

from adaptran.core.exceptions import AdaptranError, StorageFailure
from adaptran.core.frequency import load_default_frequency
from adaptran.core.models import (
    BatchConfig, ExamType, ParagraphRequest, ParagraphResult, ParagraphStatus, TranslationMode
)
from adaptran.core.pipeline import BatchTranslationService
from adaptran.core.vocabulary import UserLevelManager
from adaptran.storage import DiskStore, MemoryStore, StorageManager, UserSettings
from adaptran.storage.manager import SETTINGS_KEY
from adaptran.translation.backends import create_backend
from adaptran.utils.cache import TranslationCache
from adaptran.utils.config_loader import load_config, get_api_key
from adaptran.utils.logger import setup_logger

app = typer.Typer(
    name="adaptran",
    help="adaptran: learner-adapted translation of English text",
    add_completion=False
)

console = Console()

_state: Dict[str, Any] = {"config_path": None}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, "--config", help="Path to YAML config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to this file"),
):
    """Global options."""
    _state["config_path"] = str(config) if config else None
    cfg = _load_config()
    level = "DEBUG" if verbose else cfg["logging"]["level"]
    setup_logger(level=level, log_file=str(log_file) if log_file else cfg["logging"]["file"])


@app.command()
def translate(
    input_file: Path = typer.Argument(..., help="Text file; paragraphs are separated by blank lines"),
    provider: Optional[str] = typer.Option(None, "-p", "--provider", help="Provider (openai/anthropic/gemini/ollama/custom)"),
    model: Optional[str] = typer.Option(None, "-m", "--model", help="Model name"),
    mode: Optional[str] = typer.Option(None, "--mode", help="inline-only / bilingual / full-translate (default: from settings)"),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore cached results and merge new ones in"),
    url: str = typer.Option("", "--url", help="Page the text came from (checked against the blacklist)"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write results as JSON"),
):
    """Annotate the difficult words of a text file for the current learner."""

    if not input_file.exists():
        console.print(f"[red]Error: Input file not found: {input_file}[/red]")
        raise typer.Exit(1)

    paragraphs = split_paragraphs(input_file.read_text(encoding="utf-8"))
    if not paragraphs:
        console.print("[yellow]No text to translate[/yellow]")
        return

    cfg = _load_config()
    storage = _storage_manager(cfg)
    settings = storage.get_settings()
    profile = storage.get_user_profile()

    try:
        translation_mode = TranslationMode(mode) if mode else settings.translation_mode
    except ValueError:
        console.print(f"[red]Error: Unknown mode '{mode}'[/red]")
        raise typer.Exit(1)

    if not settings.enabled:
        console.print("[yellow]Translation is disabled in settings[/yellow]")
        return

    if settings.is_blacklisted(url):
        console.print(f"[yellow]{url} is blacklisted, nothing to do[/yellow]")
        return

    try:
        service = _build_service(cfg, settings, provider, model)
    except AdaptranError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    console.print("[bold blue]adaptran translation[/bold blue]")
    console.print(f"Input: {input_file} ({len(paragraphs)} paragraphs)")
    console.print(f"Provider: {service.adapter.provider} / {service.adapter.model}")
    console.print(f"Learner: {profile.exam_type.display_name}, ~{profile.estimated_vocabulary:.0f} words\n")

    requests = [ParagraphRequest(id=f"p{i}", text=text) for i, text in enumerate(paragraphs)]

    with console.status("[cyan]Translating..."):
        results = asyncio.run(service.translate_paragraphs(
            requests,
            profile=profile,
            mode=translation_mode,
            page_url=url or input_file.resolve().as_uri(),
            force_refresh=refresh
        ))

    _display_results(requests, results)

    stats = service.get_stats()
    console.print(
        f"\n[dim]API calls: {stats['api_calls']}  cache hits: {stats['cache_hits']}  "
        f"skipped: {stats['skipped']}[/dim]"
    )

    if output:
        payload = [
            {"id": r.id, "status": r.status.value, "error": str(r.error) if r.error else None, **r.result.to_dict()}
            for r in results
        ]
        output.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        console.print(f"[green]✓ Results written to {output}[/green]")

    if any(r.status == ParagraphStatus.UNTRANSLATED for r in results):
        raise typer.Exit(2)


@app.command()
def quick(
    text: str = typer.Argument(..., help="Word or phrase"),
    provider: Optional[str] = typer.Option(None, "-p", "--provider", help="Provider"),
    model: Optional[str] = typer.Option(None, "-m", "--model", help="Model name"),
):
    """Translate a single word or phrase."""
    cfg = _load_config()
    settings = _storage_manager(cfg).get_settings()
    try:
        service = _build_service(cfg, settings, provider, model)
        translation = asyncio.run(service.quick_translate(text))
    except AdaptranError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[bold]{text}[/bold] → {translation}")


@app.command()
def init(
    exam: str = typer.Argument("cet4", help="Exam type (cet4/cet6/toefl/ielts/gre/custom)"),
    score: Optional[float] = typer.Option(None, "-s", "--score", help="Exam score"),
):
    """Create the learner profile from an exam level."""
    try:
        exam_type = ExamType(exam.lower())
    except ValueError:
        valid = ", ".join(e.value for e in ExamType)
        console.print(f"[red]Error: Unknown exam '{exam}'. Valid: {valid}[/red]")
        raise typer.Exit(1)

    manager = _level_manager(_load_config())
    profile = manager.initialize_profile(exam_type, score)
    console.print(
        f"[green]✓ Profile initialized:[/green] {exam_type.display_name}, "
        f"estimated vocabulary {profile.estimated_vocabulary:.0f}"
    )


@app.command()
def mark(
    word: str = typer.Argument(..., help="Word to mark"),
    unknown: bool = typer.Option(False, "--unknown", "-u", help="Mark as unknown (default: known)"),
    context: str = typer.Option("", "--context", help="Sentence the word appeared in"),
    translation: str = typer.Option("", "--translation", help="Translation to remember"),
    difficulty: Optional[int] = typer.Option(None, "--difficulty", min=1, max=10, help="Override difficulty 1-10"),
):
    """Mark a word as known or unknown and update the vocabulary estimate."""
    manager = _level_manager(_load_config())
    before = manager.storage.get_user_profile().estimated_vocabulary

    if unknown:
        profile = manager.mark_unknown(word, context, translation, difficulty)
    else:
        profile = manager.mark_known(word, difficulty)

    label = "unknown" if unknown else "known"
    console.print(
        f"[green]✓ '{word}' marked {label}[/green]  "
        f"vocabulary {before:.0f} → {profile.estimated_vocabulary:.0f} "
        f"(confidence {profile.level_confidence:.2f})"
    )


@app.command()
def review(
    limit: int = typer.Option(20, "-n", "--limit", help="Maximum words to show"),
    done: Optional[str] = typer.Option(None, "--done", help="Record a review of this word"),
    recalled: Optional[bool] = typer.Option(
        None, "--recalled/--forgot", help="Whether the word was remembered (updates the vocabulary estimate)"
    ),
):
    """List unknown words due for review."""
    manager = _level_manager(_load_config())

    if done:
        entry = manager.record_review(done, recalled)
        if entry is None:
            console.print(f"[yellow]'{done}' is not in the vocabulary list[/yellow]")
            raise typer.Exit(1)
        console.print(f"[green]✓ Reviewed '{entry.word}' ({entry.review_count} reviews)[/green]")
        if recalled is not None:
            profile = manager.storage.get_user_profile()
            console.print(f"Vocabulary estimate: {profile.estimated_vocabulary:.0f}")
        return

    due = manager.due_reviews(limit)
    if not due:
        console.print("[green]Nothing due for review[/green]")
        return

    table = Table(title="Due for Review", show_header=True, header_style="bold cyan")
    table.add_column("Word", style="bold")
    table.add_column("Translation")
    table.add_column("Reviews", justify="right")
    table.add_column("Priority", justify="right")
    for entry, priority in due:
        table.add_row(entry.word, entry.translation or "-", str(entry.review_count), f"{priority:.1f}")
    console.print(table)


@app.command()
def profile():
    """Show the learner profile."""
    manager = _level_manager(_load_config())
    stats = manager.get_stats()

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Exam", stats["exam_type"])
    table.add_row("Estimated vocabulary", str(stats["estimated_vocabulary"]))
    table.add_row("Level", stats["level"])
    table.add_row("Confidence", f"{stats['confidence']:.2f}")
    table.add_row("Known words", str(stats["known_words_count"]))
    table.add_row("Unknown words", str(stats["unknown_words_count"]))
    console.print(table)

    if manager.should_reassess():
        console.print("\n[yellow]Your level estimate may be stale. Run 'adaptran init' to recalibrate.[/yellow]")


@app.command("cache-stats")
def cache_stats():
    """Show translation cache statistics."""
    cfg = _load_config()
    cache = TranslationCache(_open_store(cfg), BatchConfig.from_dict(cfg.get("batch")))
    stats = cache.get_stats()

    table = Table(title="Translation Cache", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key in ("type", "size", "max_size", "errors"):
        table.add_row(key, str(stats[key]))
    console.print(table)


@app.command("clear-cache")
def clear_cache(
    yes: bool = typer.Option(False, "-y", "--yes", help="Do not ask for confirmation"),
):
    """Delete all cached translations."""
    if not yes and not typer.confirm("Clear all cached translations?"):
        raise typer.Abort()
    cfg = _load_config()
    TranslationCache(_open_store(cfg), BatchConfig.from_dict(cfg.get("batch"))).clear()
    console.print("[green]✓ Cache cleared[/green]")


@app.command("export")
def export_data(output: Path = typer.Argument(..., help="JSON file to write")):
    """Export the learner profile and settings (without API keys)."""
    data = _storage_manager(_load_config()).export_data()
    output.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    console.print(f"[green]✓ Exported to {output}[/green]")


@app.command("import")
def import_data(input_file: Path = typer.Argument(..., help="JSON file written by 'export'")):
    """Import a learner profile and settings."""
    if not input_file.exists():
        console.print(f"[red]Error: Input file not found: {input_file}[/red]")
        raise typer.Exit(1)
    try:
        data = json.loads(input_file.read_text(encoding="utf-8"))
    except ValueError as e:
        console.print(f"[red]Error: Invalid JSON: {e}[/red]")
        raise typer.Exit(1)
    _storage_manager(_load_config()).import_data(data)
    console.print(f"[green]✓ Imported from {input_file}[/green]")


def split_paragraphs(text: str) -> List[str]:
    """Split text on blank lines, dropping empty paragraphs."""
    return [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]


def _load_config() -> Dict[str, Any]:
    return load_config(_state["config_path"])


def _open_store(cfg: Dict[str, Any]):
    storage_cfg = cfg.get("storage") or {}
    if not storage_cfg.get("persistent", True):
        return MemoryStore()
    return DiskStore(storage_cfg.get("directory") or ".cache/adaptran")


def _storage_manager(cfg: Dict[str, Any]) -> StorageManager:
    manager = StorageManager(_open_store(cfg))
    try:
        has_settings = manager.store.get(SETTINGS_KEY) is not None
    except StorageFailure:
        has_settings = False

    # Settings from the config file apply until settings are saved
    if not has_settings:
        translation = cfg.get("translation") or {}
        manager.save_settings(UserSettings.from_dict({
            "provider": translation.get("provider", "openai"),
            "model": translation.get("model"),
            "base_url": translation.get("base_url"),
            "target_language": translation.get("target_language", "Chinese"),
            "translation_mode": translation.get("mode", "inline-only"),
            "blacklist": translation.get("blacklist") or [],
        }))
    return manager


def _level_manager(cfg: Dict[str, Any]) -> UserLevelManager:
    return UserLevelManager(_storage_manager(cfg), load_default_frequency())


def _build_service(
    cfg: Dict[str, Any],
    settings: UserSettings,
    provider: Optional[str],
    model: Optional[str]
) -> BatchTranslationService:
    provider = provider or settings.provider
    api_key = settings.api_key or get_api_key(cfg, provider)
    adapter = create_backend(provider, api_key=api_key, model=model or settings.model, base_url=settings.base_url)

    batch_config = BatchConfig.from_dict(cfg.get("batch"))
    return BatchTranslationService(
        adapter,
        cache=TranslationCache(_open_store(cfg), batch_config),
        config=batch_config,
        frequency=load_default_frequency(),
        target_language=settings.target_language
    )


def _display_results(requests: List[ParagraphRequest], results: List[ParagraphResult]):
    """Print per-paragraph annotations."""
    texts = {r.id: r.text for r in requests}
    status_styles = {
        ParagraphStatus.TRANSLATED: "green",
        ParagraphStatus.CACHED: "cyan",
        ParagraphStatus.SKIPPED: "dim",
        ParagraphStatus.UNTRANSLATED: "red",
    }

    for result in results:
        style = status_styles[result.status]
        preview = texts[result.id][:70] + ("..." if len(texts[result.id]) > 70 else "")
        console.print(f"[{style}]{result.id} [{result.status.value}][/{style}] {preview}")

        if result.status == ParagraphStatus.UNTRANSLATED:
            console.print(f"  [red]{result.error}[/red]")
            continue

        if result.result.words:
            table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
            table.add_column("Word")
            table.add_column("Translation")
            table.add_column("Difficulty", justify="right")
            for word in result.result.words:
                table.add_row(word.original, word.translation, str(word.difficulty))
            console.print(table)

        for sentence in result.result.sentences:
            console.print(f"  [italic]{sentence.original}[/italic]\n  → {sentence.translation}")

        if result.result.full_text:
            console.print(f"  [dim]{result.result.full_text}[/dim]")


def cli():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
