"""
structure-guard: Grammar-Constrained Generation for Language Models

structure-guard keeps a language model's output inside a declared structure
while it is generated. The structure is compiled to a graph of grammar
machines; at every step the engine masks tokens no reading of the text so far
can accept, and advances every live reading with the sampled token.

Key Features:
    - JSON Schema and pydantic models as grammars
    - Composable primitives (phrase, character class, chain, union, loop,
      regex, delimiters, free text before a structure)
    - Several readings tracked in parallel, no backtracking
    - Token healing for tokens that overshoot the grammar
    - HuggingFace LogitsProcessor adapter and a transformers backend

Quick Start:
    ```python
    from structure_guard import StructuredGenerator
    from pydantic import BaseModel

    class User(BaseModel):
        name: str
        age: int

    generator = StructuredGenerator(model="gpt2", device="cpu")
    result = generator.generate("Generate a user profile for John Doe", User)
    print(result.value)
    ```

Architecture:
    1. Grammar machines: StateMachine graphs and Stepper cursors (core, types)
    2. Schema compiler: JSON Schema / pydantic -> StateMachine (schema)
    3. Engine: masking, sampling, advancing, output reconstruction (engine)
    4. Decoding helpers: vocabulary cache, samplers, logits processor (decoding)
    5. Validator: post-generation JSON Schema checks (validation)
"""

__version__ = "0.1.0"

from structure_guard.api import GenerationResult, StructuredGenerator, StructuringEngine  # noqa: F401
from structure_guard.core import StateMachine, Stepper, Vocabulary  # noqa: F401
from structure_guard.errors import GrammarConfigurationError, OutputParseError  # noqa: F401

__all__ = [
    "StructuredGenerator",
    "GenerationResult",
    "StructuringEngine",
    "StateMachine",
    "Stepper",
    "Vocabulary",
    "GrammarConfigurationError",
    "OutputParseError",
]
