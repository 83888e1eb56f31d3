"""CLI commands for the mock exam pipeline.

Commands:
- generate: Generate a mock exam from a study material file
- grade: Grade answers against a previously generated exam
- train: Build training material from past mistakes

Every command reads plain files, runs one pipeline operation and writes JSON
either to --output or to stdout.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Coroutine, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from mockexam.core.errors import (
    GenerationInvalid,
    InvalidQuestion,
    InvalidRequest,
    MockExamError,
    UpstreamFailed,
)
from mockexam.core.exam_generator import generate_exam
from mockexam.core.exam_grader import grade_exam
from mockexam.core.training_material import synthesize_training_material
from mockexam.llm.client import CompletionClient, LLMConfig
from mockexam.schemas import ExamRequest, GradeRequest, TrainingRequest, parse_request

app = typer.Typer(
    name="mockexam",
    help="Generate mock exams from study material and grade the answers.",
    no_args_is_help=True,
)

console = Console()


# =============================================================================
# HELPERS
# =============================================================================


def _read_text_or_exit(path: Path) -> str:
    """Read a UTF-8 text file, or exit with an error."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]✗ Could not read {path}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def _read_json_or_exit(path: Path) -> Any:
    """Read a JSON file, or exit with an error."""
    text = _read_text_or_exit(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON in {path}: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def _make_client(config: LLMConfig, provider: str | None, model: str | None) -> CompletionClient:
    """Completion client with optional provider/model overrides."""
    return CompletionClient(config=config, provider=provider, model=model)


def _write_output(data: dict[str, Any], output: Path | None) -> None:
    """Write JSON to a file, or print it when no file is given."""
    text = json.dumps(data, ensure_ascii=False, indent=2)
    if output is None:
        console.print_json(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    console.print(f"  [dim]file:[/dim]      {output}")


def _run(client: CompletionClient, operation: Coroutine[Any, Any, Any]) -> Any:
    """Run one pipeline operation, closing the client before the loop ends."""

    async def _closing() -> Any:
        try:
            return await operation
        finally:
            await client.close()

    return asyncio.run(_closing())


def _fail(message: str, error: Exception) -> NoReturn:
    """Print a pipeline error and exit."""
    console.print(f"[red]✗ {message}: {escape(str(error))}[/red]")
    if isinstance(error, GenerationInvalid):
        console.print(f"  [dim]attempts:[/dim]  {error.attempts}")
    if isinstance(error, UpstreamFailed) and error.status is not None:
        console.print(f"  [dim]status:[/dim]    {error.status}")
    raise typer.Exit(code=1)


# =============================================================================
# COMMANDS
# =============================================================================


@app.command()
def generate(
    material_file: Path = typer.Argument(
        ..., help="Study material as a plain text file"
    ),
    level: str = typer.Option(
        "C", "-l", "--level", help="Grade level: E, C, A"
    ),
    course: str = typer.Option(
        "", "-c", "--course", help="Course name (also selects the domain hint)"
    ),
    q_type: str = typer.Option(
        "mix", "-t", "--type", help="Question types: mix, mc, short, essay"
    ),
    n: int = typer.Option(
        12, "-n", help="Number of questions (3-12)"
    ),
    language: str = typer.Option(
        "sv", "--lang", help="Exam language: sv, en"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="LLM provider: openai, lmstudio"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (overrides config)"
    ),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Write the exam JSON here instead of stdout"
    ),
) -> None:
    """Generate a mock exam.

    Example:
        mockexam generate notes.txt --course "Matematik 1c" -n 8 -t mc
    """
    material = _read_text_or_exit(material_file)

    try:
        request = parse_request(
            ExamRequest,
            {
                "material": material,
                "level": level,
                "course": course,
                "type_filter": q_type,
                "count": n,
                "language": language,
            },
        )
    except InvalidRequest as e:
        _fail("Invalid request", e)

    client = _make_client(LLMConfig.from_yaml(), provider, model)
    console.print(f"[blue]Generating {request.count} questions ({request.type_filter})...[/blue]")
    console.print(f"  [dim]LLM:[/dim] {client.config.provider}/{client.config.model}")

    try:
        exam = _run(client, generate_exam(request, client))
    except MockExamError as e:
        _fail("Exam generation failed", e)

    console.print(f"[green]✓ {escape(exam.title)}[/green]")
    console.print(f"  [dim]questions:[/dim] {len(exam.questions)}")
    console.print(f"  [dim]points:[/dim]    {exam.max_points:g}")
    _write_output(exam.to_dict(), output)


@app.command()
def grade(
    material_file: Path = typer.Argument(
        ..., help="Study material the exam was generated from"
    ),
    exam_file: Path = typer.Argument(
        ..., help="Exam JSON as written by 'generate'"
    ),
    answers_file: Path = typer.Argument(
        ..., help="Answers JSON: list of {questionId, response}"
    ),
    context_file: Path | None = typer.Option(
        None, "--context", help="Student context JSON: {history, mistakes}"
    ),
    course: str = typer.Option(
        "", "-c", "--course", help="Course name"
    ),
    language: str = typer.Option(
        "sv", "--lang", help="Feedback language: sv, en"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="LLM provider for open-form grading"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (overrides config)"
    ),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Write the report JSON here instead of stdout"
    ),
) -> None:
    """Grade answers against a generated exam.

    Multiple-choice answers are scored locally. Short and essay answers are
    graded in one completion call.
    """
    data: dict[str, Any] = {
        "material": _read_text_or_exit(material_file),
        "exam": _read_json_or_exit(exam_file),
        "answers": _read_json_or_exit(answers_file),
        "course": course,
        "language": language,
    }
    if context_file is not None:
        data["context"] = _read_json_or_exit(context_file)

    try:
        request = parse_request(GradeRequest, data)
    except InvalidRequest as e:
        _fail("Invalid request", e)

    client = _make_client(LLMConfig.from_yaml(), provider, model)
    console.print(f"[blue]Grading {len(request.answers)} answers...[/blue]")

    try:
        report = _run(client, grade_exam(request, client))
    except InvalidQuestion as e:
        _fail("Invalid exam", e)
    except MockExamError as e:
        _fail("Grading failed", e)

    console.print(f"[green]✓ Graded {len(report.per_question)} questions[/green]")
    console.print(f"  [dim]score:[/dim]     {report.total_points:g}/{report.max_points:g}")
    console.print(f"  [dim]percent:[/dim]   {report.percentage:.1%}")
    _write_output(report.to_dict(), output)


@app.command()
def train(
    mistakes_file: Path = typer.Argument(
        ..., help="Mistakes JSON: list of past wrong answers"
    ),
    course: str = typer.Option(
        "", "-c", "--course", help="Course name"
    ),
    level: str = typer.Option(
        "", "-l", "--level", help="Grade level"
    ),
    language: str = typer.Option(
        "sv", "--lang", help="Material language: sv, en"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="LLM provider"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (overrides OPENAI_MODEL_TRAIN)"
    ),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Write the material JSON here instead of stdout"
    ),
) -> None:
    """Build training material targeting past mistakes."""
    mistakes = _read_json_or_exit(mistakes_file)

    try:
        request = parse_request(
            TrainingRequest,
            {"mistakes": mistakes, "course": course, "level": level, "language": language},
        )
    except InvalidRequest as e:
        _fail("Invalid request", e)

    client = _make_client(LLMConfig.for_training(), provider, model)
    console.print(f"[blue]Building training material from {len(request.mistakes)} mistakes...[/blue]")

    try:
        material = _run(client, synthesize_training_material(request, client))
    except MockExamError as e:
        _fail("Training material failed", e)

    console.print(f"[green]✓ {len(material.focus_topics)} focus topics[/green]")
    _write_output(material.to_dict(), output)


if __name__ == "__main__":
    app()
