"""console script entrypoint for the chvm CLI."""

from .cli import main as _cli_main


def main() -> int:
    """Console entrypoint used by setuptools script hooks."""
    return _cli_main()


if __name__ == "__main__":
    raise SystemExit(main())
