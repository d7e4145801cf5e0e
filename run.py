import sys
from pathlib import Path

# Automatyczne dodanie src do PYTHONPATH, żebyś nie musiał pamiętać o 'export'
sys.path.append(str(Path(__file__).resolve().parent / "src"))

from pdf_render.cli import main  # noqa: E402

if __name__ == "__main__":
    raise SystemExit(main())
