"""
Training Module with Rich Terminal UI

This module wraps model training, evaluation and hyperparameter sweeps with
progress bars and result tables drawn by the Rich library.
"""

import random
from typing import Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn, TimeElapsedColumn
)
from rich.table import Table

from .config import ModelConfig, build_model
from .evaluation import (
    GridSearchResult, SpeechNBestList, extract_correct_sentences, grid_search, perplexity,
    word_error_rate, word_error_rate_lower_bound, word_error_rate_random_choice,
    word_error_rate_upper_bound
)
from .model import CountingLanguageModel, LanguageModel

console = Console()


def create_stats_table(stats: Dict) -> Table:
    """Create a Rich table displaying training statistics."""
    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="green")
    table.add_column("Value", style="yellow", justify="right")

    for key, value in stats.items():
        display_key = key.replace('_', ' ').title()

        if isinstance(value, float):
            display_value = f"{value:,.4f}"
        elif isinstance(value, int):
            display_value = f"{value:,}"
        elif isinstance(value, list):
            display_value = f"{len(value)} items"
        else:
            display_value = str(value)

        table.add_row(display_key, display_value)

    return table


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console
    )


def print_config(config: ModelConfig) -> None:
    config_table = Table(box=box.SIMPLE, show_header=False)
    config_table.add_column("Setting", style="cyan")
    config_table.add_column("Value", style="white")
    for key, value in config.to_dict().items():
        config_table.add_row(key.replace('_', ' ').title(), "-" if value is None else str(value))
    console.print(Panel(config_table, title="[bold]Configuration[/bold]", border_style="green"))


def train_model_cli(config: ModelConfig, sentences: Sequence[List[str]],
                    save_path: Optional[str] = None) -> LanguageModel:
    """
    Build and train a model with terminal output.

    Args:
        config: Model configuration
        sentences: Training sentences (ignored by ARPA models)
        save_path: Path to save the trained counts

    Returns:
        The trained model
    """
    console.print()
    console.print(Panel.fit("[bold blue]Language Model Training[/bold blue]", border_style="blue"))
    print_config(config)

    model = build_model(config)
    if isinstance(model, CountingLanguageModel):
        with _progress() as progress:
            task = progress.add_task("[cyan]Training model...", total=len(sentences))

            def update_progress(current, stage=""):
                progress.update(task, completed=current, description=f"[cyan]{stage}")

            stats = model.train(sentences, progress_callback=update_progress)
            progress.remove_task(task)
    else:
        stats = model.training_stats

    console.print("[green]✓[/green] Model ready")
    console.print(Panel(create_stats_table(stats), title="[bold]Training Statistics[/bold]",
                        border_style="yellow"))

    if save_path:
        if not isinstance(model, CountingLanguageModel):
            console.print("[yellow]Only count-based models can be saved[/yellow]")
        else:
            with console.status("[cyan]Saving model..."):
                model.save(save_path)
            console.print(f"[green]✓[/green] Model saved to: [bold]{save_path}[/bold]")

    return model


def evaluate_model_cli(model: LanguageModel,
                       validation_sentences: Optional[Sequence[List[str]]] = None,
                       nbest_lists: Optional[Sequence[SpeechNBestList]] = None,
                       verbose: bool = False) -> Dict:
    """
    Evaluate a model with terminal output.

    Args:
        model: Trained model
        validation_sentences: Held-out sentences for perplexity
        nbest_lists: Speech n-best lists for perplexity of their references and WER
        verbose: Log the chosen and reference hypothesis of every utterance

    Returns:
        Dictionary of evaluation metrics
    """
    console.print()
    console.print(Panel.fit("[bold blue]Model Evaluation[/bold blue]", border_style="blue"))

    results = {}
    with console.status("[cyan]Scoring..."):
        if validation_sentences:
            results['validation_perplexity'] = perplexity(model, validation_sentences)
        if nbest_lists:
            results['nbest_perplexity'] = perplexity(model, extract_correct_sentences(nbest_lists))
            results['wer_best_path'] = word_error_rate_lower_bound(nbest_lists)
            results['wer_worst_path'] = word_error_rate_upper_bound(nbest_lists)
            results['wer_average_path'] = word_error_rate_random_choice(nbest_lists)
            results['word_error_rate'] = word_error_rate(model, nbest_lists, verbose=verbose)

    console.print(Panel(create_stats_table(results), title="[bold]Evaluation Results[/bold]",
                        border_style="green"))
    return results


def grid_search_cli(config: ModelConfig, points: List[Dict],
                    train_sentences: Sequence[List[str]],
                    validation_sentences: Sequence[List[str]],
                    nbest_lists: Optional[Sequence[SpeechNBestList]] = None) -> GridSearchResult:
    """Run a hyperparameter sweep with a progress bar and a results table."""
    console.print()
    console.print(Panel.fit(f"[bold blue]Grid Search ({len(points)} points)[/bold blue]",
                            border_style="blue"))

    base = config.to_dict()
    base.pop('model_type')

    def factory(**params):
        return build_model(ModelConfig(model_type=config.model_type, **{**base, **params}))

    with _progress() as progress:
        task = progress.add_task("[cyan]Searching...", total=len(points))
        result = grid_search(
            factory, train_sentences, validation_sentences, points,
            nbest_lists=nbest_lists,
            progress_callback=lambda index, row: progress.update(task, completed=index + 1),
        )

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    columns = list(points[0]) + ['perplexity'] + (['wer'] if nbest_lists else [])
    for column in columns:
        table.add_column(column.replace('_', ' ').title(), justify="right")
    for row in sorted(result.rows, key=lambda r: r['perplexity'])[:20]:
        style = "bold green" if {k: row[k] for k in points[0]} == result.best_params else None
        table.add_row(*[_format_cell(row.get(c)) for c in columns], style=style)
    console.print(table)

    if result.best_params is None:
        console.print("[red]No parameter point produced a usable model[/red]")
    else:
        console.print(f"[green]✓[/green] Best parameters: [bold]{result.best_params}[/bold] "
                      f"(perplexity {result.best_perplexity:.3f})")
    return result


def _format_cell(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.4f}"
    return str(value)


def show_generated(model: LanguageModel, count: int, rng: random.Random) -> None:
    console.print()
    console.print(Panel.fit("[bold]Generated Sentences[/bold]", border_style="magenta"))
    for _ in range(count):
        console.print("  " + " ".join(model.generate_sentence(rng=rng)))
