"""ai-note CLI実行用エントリポイント

Usage:
    python -m ai_note <command> [options]
"""

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
