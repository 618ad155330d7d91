"""Allow ``python -m version_finder``."""

from .cli import run

if __name__ == "__main__":
    run()
