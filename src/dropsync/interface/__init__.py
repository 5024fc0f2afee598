"""
Interface layer - typer CLI with rich output.
"""
