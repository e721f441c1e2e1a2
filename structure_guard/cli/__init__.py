"""
Command-line interface.

Commands:
    - generate: Generate JSON conforming to a schema with a model
    - check: Feed an existing JSON file through the compiled grammar
    - validate: Validate existing JSON against a schema

Example Usage:
    ```bash
    structure-guard generate \\
        --schema schema.json \\
        --prompt "Generate a user profile" \\
        --model gpt2

    structure-guard check --json person.json --schema schema.json --trace
    ```
"""

from .main import app, cli

__all__ = ["app", "cli"]
