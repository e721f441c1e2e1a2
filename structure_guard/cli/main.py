"""
Main CLI entry point using Typer.

Commands: generate (run a model under a schema), check (feed a JSON file
through the compiled grammar) and validate (JSON Schema validation).
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.logging import RichHandler
from typing_extensions import Annotated

from structure_guard.errors import GrammarConfigurationError

from .commands import check_command, generate_command, validate_command
from .display import print_error

app = typer.Typer(
    name="structure-guard",
    help="structure-guard - Grammar-constrained generation for LLMs",
    add_completion=False,
    rich_markup_mode="rich"
)

SchemaOption = Annotated[
    Path,
    typer.Option("--schema", "-s", help="Path to JSON schema file", exists=True, file_okay=True, dir_okay=False)
]
JsonOption = Annotated[
    Path,
    typer.Option("--json", "-j", help="Path to JSON file", exists=True, file_okay=True, dir_okay=False)
]


@app.command("generate")
def generate(
    prompt: Annotated[
        str,
        typer.Option("--prompt", "-p", help="Generation prompt")
    ],
    schema: SchemaOption,
    model: Annotated[
        str,
        typer.Option("--model", "-m", help="HuggingFace model ID")
    ] = "TinyLlama/TinyLlama-1.1B-Chat-v1.0",
    backend: Annotated[
        str,
        typer.Option("--backend", "-b", help="Backend to use")
    ] = "transformers",
    device: Annotated[
        Optional[str],
        typer.Option("--device", "-d", help="Device: cpu, cuda, mps, or None for auto-detect")
    ] = None,
    max_tokens: Annotated[
        int,
        typer.Option("--max-tokens", help="Maximum tokens to generate")
    ] = 200,
    temperature: Annotated[
        float,
        typer.Option("--temperature", "-t", help="Sampling temperature (0 for greedy)")
    ] = 0.0,
    top_p: Annotated[
        float,
        typer.Option("--top-p", help="Nucleus sampling parameter")
    ] = 1.0,
    seed: Annotated[
        Optional[int],
        typer.Option("--seed", help="Sampling seed")
    ] = None,
    multi_token: Annotated[
        bool,
        typer.Option("--multi-token", help="Emit forced continuations in a single step")
    ] = False,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Path to save output JSON")
    ] = None,
    show_schema: Annotated[
        bool,
        typer.Option("--show-schema", help="Display the schema before generation")
    ] = False,
) -> None:
    """
    Generate JSON conforming to a schema.

    Example:
        structure-guard generate \\
            --prompt "Generate a user profile for Alice, age 28" \\
            --schema schema.json \\
            --model gpt2 \\
            --device mps \\
            --output result.json
    """
    try:
        generate_command(
            prompt=prompt,
            schema_path=schema,
            model=model,
            backend=backend,
            device=device,
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=top_p,
            seed=seed,
            multi_token_sampling=multi_token,
            output_path=output,
            show_schema=show_schema,
        )
    except (GrammarConfigurationError, ValueError, OSError) as e:
        print_error(f"Command failed: {e}")
        raise typer.Exit(code=1)


@app.command("check")
def check(
    json_file: JsonOption,
    schema: SchemaOption,
    tokenizer: Annotated[
        Optional[str],
        typer.Option("--tokenizer", help="HuggingFace tokenizer to split the file with (characters if omitted)")
    ] = None,
    trace: Annotated[
        bool,
        typer.Option("--trace", help="Show one row per token")
    ] = False,
) -> None:
    """
    Feed a JSON file through the compiled grammar token by token.

    Example:
        structure-guard check --json output.json --schema schema.json --trace
    """
    try:
        check_command(
            json_path=json_file,
            schema_path=schema,
            tokenizer_name=tokenizer,
            show_trace=trace,
        )
    except (ValueError, OSError) as e:
        print_error(f"Command failed: {e}")
        raise typer.Exit(code=1)


@app.command("validate")
def validate(
    json_file: JsonOption,
    schema: SchemaOption,
    show_schema: Annotated[
        bool,
        typer.Option("--show-schema", help="Display the schema")
    ] = False,
) -> None:
    """
    Validate existing JSON against a schema.

    Example:
        structure-guard validate --json output.json --schema schema.json
    """
    try:
        validate_command(
            json_path=json_file,
            schema_path=schema,
            show_schema=show_schema
        )
    except (ValueError, OSError) as e:
        print_error(f"Command failed: {e}")
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option("--version", "-V", help="Show version and exit")
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """
    structure-guard - Grammar-constrained generation for LLMs.

    Keeps model output inside a JSON Schema while it is generated.
    """
    if version:
        from structure_guard import __version__
        typer.echo(f"structure-guard version {__version__}")
        raise typer.Exit()

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
    )

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def cli() -> None:
    """CLI entry point for the console script."""
    app()


if __name__ == "__main__":
    cli()
