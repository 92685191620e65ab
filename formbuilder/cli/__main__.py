"""Allow ``python -m formbuilder.cli``."""

from __future__ import annotations

from formbuilder.cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
