"""Allow running as ``python -m weather_tui``."""

from .app import main

if __name__ == "__main__":
    main()
