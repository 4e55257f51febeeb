"""Main CLI interface using Typer."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from sheettrans.core.exceptions import ParseExhausted, SheetTransError
from sheettrans.core.orchestrator import OrchestratorConfig, TranslationOrchestrator
from sheettrans.extraction.table_reader import read_table
from sheettrans.rendering.table_writer import translated_file_name, write_table
from sheettrans.translation.backends import GeminiClient
from sheettrans.translation.prompts import PromptLibrary
from sheettrans.utils.config_loader import load_config, resolve_api_key
from sheettrans.utils.logger import setup_logger
from sheettrans.utils.progress import ProgressReporter

app = typer.Typer(
    name="sheettrans",
    help="SheetTrans-LLM: translate spreadsheet rows with Gemini",
    add_completion=False
)

console = Console()


@app.command()
def translate(
    input_file: Path = typer.Argument(..., help="Input workbook (.xlsx/.xls/.csv)"),
    language: Optional[str] = typer.Option(None, "-l", "--language", help="Target language name (e.g. Hindi, Marathi)"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Output .xlsx path"),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Gemini API key (defaults to GEMINI_API_KEY)"),
    prompt_file: Optional[Path] = typer.Option(None, "--prompt-file", help="File with a custom translation instruction"),
    chunk_size: Optional[int] = typer.Option(None, "-c", "--chunk-size", help="Rows per model request"),
    model: Optional[str] = typer.Option(None, "-m", "--model", help="Gemini model name"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
    lenient_rows: bool = typer.Option(False, "--lenient-rows", help="Drop rows the model failed to return instead of failing"),
    debug_mode: bool = typer.Option(False, "--debug/--no-debug", help="Enable debug logging"),
):
    """Translate a spreadsheet."""

    config = load_config(str(config_path) if config_path else None)
    log_settings = config.get("logging") or {}
    setup_logger(level="DEBUG" if debug_mode else log_settings.get("level", "INFO"), log_file=log_settings.get("file"))

    if not input_file.exists():
        console.print(f"[red]Error: Input file not found: {input_file}[/red]")
        raise typer.Exit(1)

    translation_settings = dict(config.get("translation") or {})
    language = language or translation_settings.get("default_language", "Hindi")
    if chunk_size is not None:
        translation_settings["chunk_size"] = chunk_size
    if lenient_rows:
        translation_settings["strict_row_count"] = False
    if model:
        config.setdefault("model", {})["name"] = model

    try:
        credential = resolve_api_key(config, api_key)

        prompts = PromptLibrary.from_config(config)
        if prompt_file:
            prompts = prompts.with_override(language, prompt_file.read_text(encoding="utf-8"))
        system_prompt = prompts.get_template(language)
        if not system_prompt:
            console.print(f"[yellow]No prompt template for {language}; sending an empty instruction[/yellow]")

        rows, headers = read_table(input_file)
        if not rows:
            console.print("[red]Error: Please upload a valid Excel file with content.[/red]")
            raise typer.Exit(1)

        if output is None:
            output = input_file.with_name(translated_file_name(input_file.name, language))

        console.print(f"[bold blue]SheetTrans-LLM Translation[/bold blue]")
        console.print(f"Input: {input_file} ({len(rows)} rows, {len(headers)} columns)")
        console.print(f"Output: {output}")
        console.print(f"Language: {language}\n")

        orchestrator = TranslationOrchestrator(
            GeminiClient.from_config(config),
            OrchestratorConfig.from_dict(translation_settings),
            prompts=prompts,
        )

        with ProgressReporter(console=console) as progress:
            result = asyncio.run(orchestrator.translate_job(
                rows, headers, system_prompt, language, credential, on_progress=progress
            ))

        sheet_name = (config.get("output") or {}).get("sheet_name", "TranslatedSheet")
        write_table(result.rows, result.translated_headers, output, sheet_name=sheet_name)

    except ParseExhausted as e:
        console.print(f"[red]JSON Parse error: The API returned an invalid format. {e.message}[/red]")
        if e.suggestion:
            console.print(f"[yellow]{e.suggestion}[/yellow]")
        raise typer.Exit(1)
    except SheetTransError as e:
        console.print(f"[red]Translation failed. Error: {e.message}[/red]")
        if e.suggestion:
            console.print(f"[yellow]{e.suggestion}[/yellow]")
        raise typer.Exit(1)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise typer.Exit(1)

    for warning in result.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    console.print("\n[bold green]Translation successful![/bold green]")
    console.print(
        f"{len(result.rows)} rows ({result.passthrough_rows} kept in original language), "
        f"{result.chunks_translated} chunks in {result.duration:.1f}s"
    )
    console.print(f"Output: {output}")


@app.command()
def prompt(
    language: str = typer.Argument(..., help="Target language name"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """Show the translation instruction used for a language."""
    prompts = PromptLibrary.from_config(load_config(str(config_path) if config_path else None))
    template = prompts.get_template(language)

    if not template:
        console.print(f"[yellow]No prompt template configured for {language}[/yellow]")
        raise typer.Exit(1)

    source = "config override" if prompts.is_overridden(language) else "built-in"
    console.print(f"[bold]{language}[/bold] [dim]({source})[/dim]\n")
    console.print(template, highlight=False, markup=False)


@app.command()
def languages(
    config_path: Optional[Path] = typer.Option(None, "--config", help="YAML config file"),
):
    """List languages with a prompt template."""
    prompts = PromptLibrary.from_config(load_config(str(config_path) if config_path else None))

    table = Table(title="Configured Languages")
    table.add_column("Language", style="cyan")
    table.add_column("Source")
    table.add_column("Prompt length", justify="right")

    for name in prompts.languages:
        source = "config override" if prompts.is_overridden(name) else "built-in"
        table.add_row(name, source, str(len(prompts.get_template(name))))

    console.print(table)


def cli():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    cli()
