"""Module entrypoint for ``python -m lms_gateway``."""

from lms_gateway.cli import app

if __name__ == "__main__":
    app(prog_name="lms-gateway")
