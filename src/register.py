# src/register.py
"""
Content registry for the tycoon world.

Every JSON file under `content/<ModelName>/` (and the same layout inside each
mod folder) is validated with the objects.py model named by its folder.
Definitions keyed by `id` (resources, business kinds, shipping kinds) go into a
dict, so a mod redefining e.g. `walker` replaces the base entry; keyless models
such as GameConfig are appended to a list and the last one wins downstream.
Folders called "meta" (generated schemas) or starting with a dot are ignored.
"""
import inspect
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

import objects as G

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
# Local content directory
LOCAL_CONTENT = PROJECT_ROOT / "content"
# Mods, applied after the local content in this order
MOD_PATHS = [
    PROJECT_ROOT / "content_custom" / "modA",
    PROJECT_ROOT / "content_custom" / "modB",
]

Registry = Dict[str, Union[List[BaseModel], Dict[str, BaseModel]]]


def is_valid_folder(path: Path) -> bool:
    return path.is_dir() and not path.name.startswith('.') and path.name != 'meta'


def load_models() -> Dict[str, type]:
    """Public pydantic models of objects.py by class name. `_Instance` models are runtime-only."""
    return {
        name: cls
        for name, cls in inspect.getmembers(G, inspect.isclass)
        if issubclass(cls, BaseModel) and cls is not BaseModel and not name.startswith("_")
    }


def _parse(json_file: Path, model_cls: type) -> Optional[BaseModel]:
    try:
        return model_cls.model_validate(json.loads(json_file.read_text(encoding="utf-8")))
    except (OSError, ValueError, ValidationError) as e:
        logger.error("Error parsing %s: %s", json_file, e)
        return None


def register_content(folders: List[Path]) -> Registry:
    models = load_models()
    keyed = {name for name, cls in models.items() if 'id' in cls.model_fields}
    registry: Registry = {name: ({} if name in keyed else []) for name in models}

    for folder in folders:
        if not folder.exists():
            continue
        for sub in sorted(folder.iterdir()):
            if not is_valid_folder(sub):
                continue
            model_cls = models.get(sub.name)
            if model_cls is None:
                logger.debug("Skipping unknown content folder %s", sub)
                continue
            for json_file in sorted(sub.glob("*.json")):
                instance = _parse(json_file, model_cls)
                if instance is None:
                    continue
                if sub.name not in keyed:
                    registry[sub.name].append(instance)
                    continue
                entries = registry[sub.name]
                if instance.id in entries:
                    logger.info("%s overrides %s %s", json_file, sub.name, instance.id.value)
                entries[instance.id] = instance

    return registry


def check_references(registry: Registry) -> List[str]:
    """Resources named by business kinds or as a raw input must themselves be defined."""
    resources = registry.get("ResourceDefinition", {})
    problems: List[str] = []
    for business in registry.get("BusinessDefinition", {}).values():
        for field in ("input_resource", "output_resource"):
            rid = getattr(business, field)
            if rid not in resources:
                problems.append(f"{business.id.value}.{field} names undefined resource {rid.value}")
    for resource in resources.values():
        if resource.raw_input is not None and resource.raw_input not in resources:
            problems.append(f"{resource.id.value}.raw_input names undefined resource {resource.raw_input.value}")
    for problem in problems:
        logger.warning(problem)
    return problems


def main():
    logging.basicConfig(level=logging.INFO)
    registry = register_content([LOCAL_CONTENT] + MOD_PATHS)
    for model_name, collection in registry.items():
        print(f"Loaded {len(collection)} {model_name} entries.")
    check_references(registry)


if __name__ == "__main__":
    main()
