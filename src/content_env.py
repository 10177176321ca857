# src/content_env.py
"""
Writes the JSON Schema of every public content model in src/objects.py to
content/meta/<ClassName>/schema.json, so content authors get editor validation
for the files under content/ and content_custom/.
"""
import json
import logging
from pathlib import Path
from typing import List, Optional

import register

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path(__file__).resolve().parent.parent / "content" / "meta"


def write_schemas(output_base: Optional[Path] = None) -> List[Path]:
    output_base = Path(output_base) if output_base is not None else DEFAULT_OUTPUT
    output_base.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    for name, cls in sorted(register.load_models().items()):
        model_dir = output_base / name
        model_dir.mkdir(parents=True, exist_ok=True)

        schema_file = model_dir / "schema.json"
        with open(schema_file, "w", encoding="utf-8") as f:
            json.dump(cls.model_json_schema(), f, indent=2)
        logger.debug("Wrote schema for %s to %s", name, schema_file)
        written.append(schema_file)
    return written


def main():
    logging.basicConfig(level=logging.INFO)
    for schema_file in write_schemas():
        print(f"✔ Wrote schema for '{schema_file.parent.name}' to {schema_file}")


if __name__ == "__main__":
    main()
