"""Grammar building blocks: base primitives and JSON value machines."""
