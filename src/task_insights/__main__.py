"""Allow ``python -m task_insights``."""

from .cli import main

if __name__ == "__main__":
    main()
