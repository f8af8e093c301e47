"""Allow running sessionvault as ``python -m sessionvault``."""

from sessionvault import main

if __name__ == "__main__":
    main()
