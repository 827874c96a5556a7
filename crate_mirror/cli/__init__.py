"""
Command Line Interface Layer.

Typer commands, rich output formatting and live progress display.
"""
