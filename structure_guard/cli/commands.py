"""
CLI command implementations.

This module contains the business logic for each CLI command:
- generate: Run a model under a schema
- check: Feed an existing JSON file through the compiled grammar
- validate: Validate existing JSON against a schema
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from structure_guard.engine import StructuringEngine
from structure_guard.errors import GrammarConfigurationError
from structure_guard.validation import validate, validate_value

from .display import (
    console,
    create_progress_spinner,
    print_check_trace,
    print_error,
    print_header,
    print_info,
    print_json,
    print_model_loading,
    print_result_stats,
    print_schema,
    print_segments,
    print_separator,
    print_success,
    print_validation_errors,
    print_warning,
)


class CharacterTokenizer:
    """
    One token per character, for checking files without a model.

    Covers printable ASCII plus every character of the given text. Id 0 is
    the end-of-sequence token.
    """

    eos_token = "</s>"
    eos_token_id = 0

    def __init__(self, text: str = ""):
        characters = sorted(set(chr(code) for code in range(32, 127)) | set("\n\t") | set(text))
        self._vocab = {self.eos_token: self.eos_token_id}
        for token_id, character in enumerate(characters, start=1):
            self._vocab[character] = token_id
        self._strings = {token_id: token for token, token_id in self._vocab.items()}
        self.all_special_ids = [self.eos_token_id]

    def get_vocab(self) -> Dict[str, int]:
        return dict(self._vocab)

    def encode(self, text: str, add_special_tokens: bool = False) -> List[int]:
        return [self._vocab[character] for character in text]

    def decode(self, token_ids: List[int], skip_special_tokens: bool = False) -> str:
        return "".join(
            self._strings[token_id]
            for token_id in token_ids
            if not (skip_special_tokens and token_id == self.eos_token_id)
        )

    def __len__(self) -> int:
        return len(self._vocab)


def load_schema_file(schema_path: Path) -> Dict:
    """
    Load and parse a JSON schema file.

    Raises:
        ValueError: If file doesn't exist or isn't valid JSON
    """
    if not schema_path.exists():
        raise ValueError(f"Schema file not found: {schema_path}")

    try:
        with open(schema_path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in schema file: {e}") from e


def load_tokenizer(tokenizer_name: Optional[str], text: str) -> Any:
    """HuggingFace tokenizer by name, or a character tokenizer covering `text`."""
    if tokenizer_name is None:
        return CharacterTokenizer(text)

    from transformers import AutoTokenizer
    return AutoTokenizer.from_pretrained(tokenizer_name)


def generate_command(
    prompt: str,
    schema_path: Path,
    model: str,
    backend: str,
    device: Optional[str],
    max_tokens: int,
    temperature: float,
    top_p: float,
    seed: Optional[int],
    multi_token_sampling: bool,
    output_path: Optional[Path],
    show_schema: bool,
) -> None:
    """
    Execute the generate command.

    Args:
        prompt: Generation prompt
        schema_path: Path to JSON schema file
        model: Model ID
        backend: Backend to use
        device: Device to use (cpu, cuda, mps, or None for auto)
        max_tokens: Maximum tokens to generate
        temperature: Sampling temperature (0 for greedy)
        top_p: Nucleus sampling parameter
        seed: Sampling seed
        multi_token_sampling: Emit forced continuations in one step
        output_path: Optional path to save output JSON
        show_schema: Whether to display the schema
    """
    print_header("structure-guard - Structured Generation")

    try:
        schema = load_schema_file(schema_path)
        print_success(f"Loaded schema from: {schema_path}")
    except ValueError as e:
        print_error(f"Failed to load schema: {e}")
        raise SystemExit(1)

    if show_schema:
        print_schema(schema)

    print_separator()
    print_info(f"Prompt: [bold]{prompt}[/bold]")
    print_info(f"Device: [bold]{device or 'auto'}[/bold]")
    print_info(f"Max Tokens: [bold]{max_tokens}[/bold]")
    print_info(f"Temperature: [bold]{temperature}[/bold]")
    print_separator()

    print_model_loading(model, backend)

    from structure_guard.generator import StructuredGenerator

    with create_progress_spinner() as progress:
        progress.add_task(description="Loading model...", total=None)
        generator = StructuredGenerator(
            model=model,
            backend=backend,
            device=device,
            multi_token_sampling=multi_token_sampling,
        )
    print_success("Model loaded successfully")

    console.print()
    with create_progress_spinner() as progress:
        progress.add_task(description="Generating...", total=None)
        result = generator.generate(
            prompt=prompt,
            structure=schema,
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=top_p,
            seed=seed,
        )

    console.print()
    print_separator()

    if result.is_valid:
        print_success("Generation successful!")
        print_json(result.output, title="Generated Output")
    else:
        print_error("Generation did not produce a valid structure")
        console.print(result.output)
        print_validation_errors(result.validation_errors)

    print_segments(result.segments)
    print_result_stats(
        is_valid=result.is_valid,
        latency_ms=result.latency_ms,
        tokens_generated=result.tokens_generated,
    )

    if output_path and result.is_valid:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            json.dump(result.value, f, indent=2, default=str)
        print_success(f"Output saved to: {output_path}")


def check_command(
    json_path: Path,
    schema_path: Path,
    tokenizer_name: Optional[str],
    show_trace: bool,
) -> None:
    """
    Execute the check command.

    Tokenizes the file, feeds the tokens to an engine configured with the
    schema one at a time, and reports where (if anywhere) the grammar
    rejects the text, whether it accepts at the end, the labelled segments,
    and schema validation of the value.

    Args:
        json_path: Path to the JSON file to check
        schema_path: Path to JSON schema file
        tokenizer_name: HuggingFace tokenizer name (character tokens if None)
        show_trace: Print one row per token
    """
    print_header("structure-guard - Check Against Grammar")

    schema = load_schema_file(schema_path)
    text = json_path.read_text().strip()

    tokenizer = load_tokenizer(tokenizer_name, text)
    engine = StructuringEngine(tokenizer)
    try:
        engine.configure(schema)
    except GrammarConfigurationError as e:
        print_error(f"Schema cannot be compiled: {e}")
        raise SystemExit(1)
    print_success(f"Compiled schema from: {schema_path}")

    token_ids = tokenizer.encode(text, add_special_tokens=False)
    steps: List[Dict[str, Any]] = []
    rejected_at: Optional[int] = None

    for index, token_id in enumerate(token_ids):
        emitted = engine.consume(token_id)
        steps.append({
            "token": engine.vocabulary.token_string(token_id),
            "token_id": token_id,
            "accepted": bool(emitted),
            "active_steppers": len(engine.steppers),
            "accepting": engine.has_reached_accept_state,
        })
        if not emitted:
            rejected_at = index
            break

    if show_trace:
        print_check_trace(steps)

    if rejected_at is not None:
        consumed = tokenizer.decode(token_ids[:rejected_at])
        print_error(f"Grammar rejected token {rejected_at + 1} after {len(consumed)} characters")
        console.print(f"[dim]{consumed}[/dim][bold red]{steps[-1]['token']}[/bold red]")
        raise SystemExit(1)

    if not engine.has_reached_accept_state:
        print_error("Text is a valid prefix but the structure is incomplete")
        raise SystemExit(1)

    print_success(f"Grammar accepted all {len(token_ids)} tokens")
    value = engine.get_structured_output()
    print_json(value, title="Parsed Value")
    print_segments(list(engine.get_stateful_structured_output()))

    result = validate_value(value, schema, raw_output=text)
    if not result.is_valid:
        print_warning("Value violates schema keywords the grammar does not enforce")
        print_validation_errors(result.errors)
        raise SystemExit(1)

    print_success("Schema validation passed")


def validate_command(
    json_path: Path,
    schema_path: Path,
    show_schema: bool
) -> None:
    """
    Execute the validate command.

    Args:
        json_path: Path to JSON file to validate
        schema_path: Path to JSON schema file
        show_schema: Whether to display the schema
    """
    print_header("structure-guard - Validate JSON")

    try:
        schema = load_schema_file(schema_path)
        print_success(f"Loaded schema from: {schema_path}")
    except ValueError as e:
        print_error(f"Failed to load schema: {e}")
        raise SystemExit(1)

    if show_schema:
        print_schema(schema)

    text = json_path.read_text()
    result = validate(text, schema)

    if result.parsed_output is not None:
        print_json(result.parsed_output, title="Input JSON")

    print_separator()
    console.print()
    if result.is_valid:
        print_success("Validation passed!")
    else:
        print_error("Validation failed")
        print_validation_errors(result.errors)
        raise SystemExit(1)
