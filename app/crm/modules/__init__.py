"""
Feature modules live under this package.

Keep module boundaries clean: each module owns its routes and domain types,
while reusing platform primitives (config, constants).
"""
