"""Entry point for python -m pmenvelope."""

from pmenvelope.cli import cli

if __name__ == "__main__":
    cli(prog_name="pmenvelope")
