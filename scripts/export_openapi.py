"""Export the OpenAPI spec to a JSON file without starting the server.

Usage:
    python scripts/export_openapi.py [output.json]   # "-" or nothing prints to stdout
"""
import json
import sys
from pathlib import Path

# Add the repository root to path so imports work
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from taskboard.main import app  # noqa: E402


def main():
    spec = app.openapi()
    output = sys.argv[1] if len(sys.argv) > 1 else "-"
    content = json.dumps(spec, indent=2)
    if output == "-":
        print(content)
    else:
        Path(output).write_text(content)
        print(f"Wrote {len(spec.get('paths', {}))} paths to {output}", file=sys.stderr)


if __name__ == "__main__":
    main()
