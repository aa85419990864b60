"""Command-line interface for Comment Spam Classifier.

Provides ``train``, ``evaluate``, ``classify``, ``update``, ``report`` and
``models`` commands with rich terminal output using the ``click`` and
``rich`` libraries.

Usage::

    spam-classifier train comments.jsonl --type naive_bayes
    spam-classifier classify 1 "Buy cheap pills at http://spam.biz"
    spam-classifier update 1 "Thanks for the review" --label not_spam
    spam-classifier report 1
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import Settings
from .documents import JsonDocumentStore
from .exceptions import ClassifierError
from .models import ClassificationResult, ClassifierType, Document, Label
from .naive_bayes import NaiveBayesClassifier
from .passive_aggressive import PassiveAggressiveClassifier, PAVariant
from .persistence import ModelStore, parse_key
from .pipeline import SpamFilter
from .report import ModelReport

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

_CLI_ERRORS = (ClassifierError, ValueError, OSError)

_output_option = click.option(
    "--output", "-o", type=click.Choice(["rich", "json"]), default="rich",
    help="Output format.",
)
_model_dir_option = click.option(
    "--model-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
    help="Model directory (overrides SPAM_CLASSIFIER_MODEL_DIR).",
)


def _label_style(label: Label) -> str:
    """Return a rich style string for a label."""
    return {
        Label.SPAM: "bold red",
        Label.NOT_SPAM: "bold green",
    }.get(label, "")


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/] {escape(str(error))}")
    sys.exit(1)


def _configure_logging(level: str) -> None:
    """Send package logs to stderr through a single rich handler."""
    package_logger = logging.getLogger("spam_classifier")
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(RichHandler(console=err_console, show_path=False))
    package_logger.setLevel(level)


def _override(settings: Settings, **changes) -> Settings:
    """Apply command-line options that were actually given."""
    return dataclasses.replace(settings, **{k: v for k, v in changes.items() if v is not None})


def _store(settings: Settings, model_dir: Optional[Path]) -> ModelStore:
    return ModelStore(model_dir or settings.model_dir)


@click.group()
@click.version_option(package_name="comment-spam-classifier")
@click.option("--env-file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Load settings from this .env file.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, env_file: Optional[Path], verbose: bool) -> None:
    """🛡️ Comment Spam Classifier — learn to tell spam from real comments.

    Train Naive Bayes or Passive-Aggressive models on labelled comments,
    store them, and classify new comments.
    """
    try:
        settings = Settings.from_env(env_file)
    except ClassifierError as e:
        _fail(e)

    _configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


@main.command()
@click.argument("corpus", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "kind", type=click.Choice([t.value for t in ClassifierType]),
              default=None, help="Learning algorithm.")
@click.option("--folds", type=click.IntRange(min=2), default=None,
              help="Number of cross-validation folds.")
@click.option("--stratify/--no-stratify", default=None,
              help="Preserve the class balance in every fold.")
@click.option("--cv/--no-cv", "cross_validate", default=None,
              help="Cross-validate after training.")
@click.option("--optimize/--no-optimize", default=None,
              help="Drop cached entries and prune the weight history.")
@click.option("--history-length", type=click.IntRange(min=1), default=None,
              help="Weight snapshots kept by --optimize.")
@click.option("--variant", type=click.Choice([v.value for v in PAVariant]), default=None,
              help="Passive-Aggressive step-size rule.")
@click.option("--aggressiveness", type=click.FloatRange(min=0, min_open=True), default=None,
              help="C constant of PA-I / PA-II.")
@click.option("--workers", type=click.IntRange(min=1), default=None,
              help="Threads used to evaluate folds.")
@click.option("--key", default=None, help="Store key (default: next free integer).")
@_model_dir_option
@_output_option
@click.pass_obj
def train(
    settings: Settings,
    corpus: Path,
    kind: Optional[str],
    folds: Optional[int],
    stratify: Optional[bool],
    cross_validate: Optional[bool],
    optimize: Optional[bool],
    history_length: Optional[int],
    variant: Optional[str],
    aggressiveness: Optional[float],
    workers: Optional[int],
    key: Optional[str],
    model_dir: Optional[Path],
    output: str,
) -> None:
    """Train a model on a labelled corpus and store it.

    CORPUS is a JSON array or JSON-lines file of {"content", "label"} records.

    Example: spam-classifier train comments.jsonl --type naive_bayes
    """
    settings = _override(
        settings,
        classifier_type=ClassifierType(kind) if kind else None,
        folds=folds,
        stratified=stratify,
        cross_validate=cross_validate,
        optimize=optimize,
        history_length=history_length,
        pa_variant=PAVariant(variant) if variant else None,
        pa_aggressiveness=aggressiveness,
        workers=workers,
    )

    with console.status("[bold blue]Training model...", spinner="dots"):
        try:
            documents = JsonDocumentStore(corpus).find_all()
            spam_filter = SpamFilter.build(documents, settings=settings)
            saved_key = spam_filter.save(
                _store(settings, model_dir), parse_key(key) if key else None
            )
        except _CLI_ERRORS as e:
            _fail(e)

    report = spam_filter.report(saved_key)
    if output == "json":
        click.echo(json.dumps(_report_overview(report), indent=2))
    else:
        _render_report(report)
        console.print(f"[dim]Model saved under key {saved_key}[/]")


@main.command()
@click.argument("corpus", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--type", "kind", type=click.Choice([t.value for t in ClassifierType]),
              default=None, help="Learning algorithm.")
@click.option("--folds", type=click.IntRange(min=2), default=None,
              help="Number of cross-validation folds.")
@click.option("--stratify/--no-stratify", default=None,
              help="Preserve the class balance in every fold.")
@click.option("--workers", type=click.IntRange(min=1), default=None,
              help="Threads used to evaluate folds.")
@_output_option
@click.pass_obj
def evaluate(
    settings: Settings,
    corpus: Path,
    kind: Optional[str],
    folds: Optional[int],
    stratify: Optional[bool],
    workers: Optional[int],
    output: str,
) -> None:
    """Cross-validate a model on a corpus without storing it.

    Example: spam-classifier evaluate comments.jsonl --folds 5
    """
    settings = _override(
        settings,
        classifier_type=ClassifierType(kind) if kind else None,
        folds=folds,
        stratified=stratify,
        workers=workers,
    )

    with console.status("[bold blue]Cross-validating...", spinner="dots"):
        try:
            documents = JsonDocumentStore(corpus).find_all()
            spam_filter = SpamFilter.build(
                documents, settings=settings, cross_validate=True, optimize=False
            )
        except _CLI_ERRORS as e:
            _fail(e)

    stats = spam_filter.classifier.statistics
    if output == "json":
        click.echo(json.dumps({
            "type": spam_filter.classifier.kind.value,
            **stats.to_dict(),
        }, indent=2))
    else:
        console.print(Panel(
            f"Instances: {stats.total} | Folds: {stats.folds} | "
            f"Evaluated: {stats.evaluated}\n"
            f"Asserts: {stats.asserts} | "
            f"Assertion ratio: [bold]{stats.assertion_ratio:.2%}[/] | "
            f"Deviation: {stats.deviation:.4f}",
            title=f"📊 Cross-validation — {spam_filter.classifier.kind.value}",
            border_style="blue",
        ))


@main.command()
@click.argument("key")
@click.argument("texts", nargs=-1)
@click.option("--file", "-f", "corpus", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="Classify every record of a JSON / JSON-lines file.")
@click.option("--no-fallback", is_flag=True,
              help="Keep ambiguous predictions instead of using the default class.")
@click.option("--save-state", is_flag=True,
              help="Store the model again after classifying (keeps online learning).")
@_model_dir_option
@_output_option
@click.pass_obj
def classify(
    settings: Settings,
    key: str,
    texts: tuple[str, ...],
    corpus: Optional[Path],
    no_fallback: bool,
    save_state: bool,
    model_dir: Optional[Path],
    output: str,
) -> None:
    """Classify comments with a stored model.

    Example: spam-classifier classify 1 "Buy cheap pills now"
    """
    if not texts and corpus is None:
        raise click.UsageError("Give TEXT arguments or --file.")

    store = _store(settings, model_dir)
    try:
        spam_filter = SpamFilter.load(store, parse_key(key))
        documents: list = list(texts)
        if corpus is not None:
            documents.extend(JsonDocumentStore(corpus).find_all())
        results = spam_filter.classify(documents, use_default_fallback=not no_fallback)
        if save_state:
            spam_filter.save(store)
    except _CLI_ERRORS as e:
        _fail(e)

    if output == "json":
        click.echo(json.dumps(
            [_result_record(doc, result) for doc, result in zip(documents, results)],
            indent=2,
        ))
    else:
        _render_results(documents, results)


@main.command()
@click.argument("key")
@click.argument("text")
@click.option("--label", "-l", type=click.Choice([label.value for label in Label]),
              required=True, help="True label of the comment.")
@click.option("--step", type=click.IntRange(min=0), default=None,
              help="Replay from this weight step (default: latest).")
@_model_dir_option
@_output_option
@click.pass_obj
def update(
    settings: Settings,
    key: str,
    text: str,
    label: str,
    step: Optional[int],
    model_dir: Optional[Path],
    output: str,
) -> None:
    """Teach a stored Passive-Aggressive model one labelled comment.

    Example: spam-classifier update 1 "Great post, thanks" --label not_spam
    """
    store = _store(settings, model_dir)
    try:
        spam_filter = SpamFilter.load(store, parse_key(key))
        result = spam_filter.update(text, Label(label), step_index=step)
        spam_filter.save(store)
    except _CLI_ERRORS as e:
        _fail(e)

    latest = spam_filter.classifier.latest_step
    if output == "json":
        click.echo(json.dumps({
            **result.to_dict(),
            "loss": result.confidence,
            "latest_step": latest,
        }, indent=2))
    else:
        style = _label_style(result.label)
        console.print(
            f"Predicted [{style}]{result.label.value}[/] before update "
            f"(loss {result.confidence:.4f}); latest step is now {latest}."
        )


@main.command()
@click.argument("key")
@click.option("--top", type=click.IntRange(min=1), default=10,
              help="Number of features to list.")
@_model_dir_option
@_output_option
@click.pass_obj
def report(
    settings: Settings,
    key: str,
    top: int,
    model_dir: Optional[Path],
    output: str,
) -> None:
    """Show statistics and model details of a stored model.

    Example: spam-classifier report 1 --output json
    """
    try:
        spam_filter = SpamFilter.load(_store(settings, model_dir), parse_key(key))
        model_report = spam_filter.report()
    except _CLI_ERRORS as e:
        _fail(e)

    if output == "json":
        click.echo(json.dumps(model_report.to_dict(), indent=2))
        return

    _render_report(model_report)
    _render_features(spam_filter, top)


@main.command()
@_model_dir_option
@click.pass_obj
def models(settings: Settings, model_dir: Optional[Path]) -> None:
    """List stored models."""
    store = _store(settings, model_dir)
    try:
        keys = store.keys()
    except OSError as e:
        _fail(e)

    if not keys:
        console.print(f"[dim]No models in {store.root}[/]")
        return

    table = Table(title=f"Models — {store.root}")
    table.add_column("Key", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Instances", justify="right")
    table.add_column("Attributes", justify="right")
    table.add_column("Ratio", justify="right")

    for model_key in keys:
        try:
            clf = store.load(model_key)
        except _CLI_ERRORS as e:
            logger.warning("Cannot load model %r: %s", model_key, e)
            table.add_row(str(model_key), Text("unreadable", style="red"), "-", "-", "-")
            continue
        table.add_row(
            str(model_key),
            clf.kind.value,
            str(clf.statistics.total),
            str(len(clf.vocabulary)),
            f"{clf.statistics.assertion_ratio:.2%}",
        )

    console.print(table)


# ------------------------------------------------------------------
# Rendering helpers
# ------------------------------------------------------------------

def _report_overview(report: ModelReport) -> dict:
    """Report fields without the (potentially large) model payload."""
    data = report.to_dict()
    data.pop("extra")
    return data


def _result_record(document, result: ClassificationResult) -> dict:
    record = {"text": document.content if isinstance(document, Document) else document}
    if isinstance(document, Document) and document.id is not None:
        record["id"] = document.id
    record.update(result.to_dict())
    return record


def _render_report(report: ModelReport) -> None:
    """Render a ModelReport as a rich panel."""
    title = f"🛡️ {report.type}" + (f" — key {report.key}" if report.key is not None else "")
    console.print(Panel(report.summary(), title=title, border_style="blue"))


def _render_results(documents: list, results: list[ClassificationResult]) -> None:
    """Render classification results as a rich table."""
    has_truth = any(r.correct is not None for r in results)

    table = Table(title="Classification", show_lines=False)
    table.add_column("#", justify="right", width=4)
    table.add_column("Label", width=10)
    table.add_column("Confidence", justify="right", width=12)
    if has_truth:
        table.add_column("Correct", width=10)
    table.add_column("Text (excerpt)", style="white", max_width=60)

    for i, (doc, result) in enumerate(zip(documents, results), 1):
        text = doc.content if isinstance(doc, Document) else doc
        excerpt = text[:80].replace("\n", " ") + ("..." if len(text) > 80 else "")
        row = [
            str(i),
            Text(result.label.value, style=_label_style(result.label)),
            f"{result.confidence:.4g}",
        ]
        if has_truth:
            mark = {True: "✓", False: "✗", None: "-"}[result.is_correct]
            row.append(mark)
        row.append(excerpt)
        table.add_row(*row)

    console.print(table)


def _render_features(spam_filter: SpamFilter, top: int) -> None:
    """Show the strongest features of the stored model."""
    clf = spam_filter.classifier
    if isinstance(clf, NaiveBayesClassifier):
        ranked = clf.most_informative_features(Label.SPAM, top_n=top)
        title, column = "Most spam-indicative features", "Likelihood diff."
    elif isinstance(clf, PassiveAggressiveClassifier):
        weights = clf.model.weights(clf.latest_step)
        ranked = sorted(weights.items(), key=lambda x: x[1], reverse=True)[:top]
        title, column = f"Top weights (step {clf.latest_step})", "Weight"
    else:
        return

    table = Table(title=title)
    table.add_column("Feature", style="cyan")
    table.add_column(column, justify="right")
    for feature, value in ranked:
        table.add_row(feature, f"{value:.4f}")

    console.print(table)
    console.print()


if __name__ == "__main__":
    main()
