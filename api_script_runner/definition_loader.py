"""Load script files from YAML."""

import asyncio
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from api_script_runner.models.definition import ScriptFile

log = logging.getLogger(__name__)


async def load_script_file(path: Path) -> ScriptFile:
    """Load and validate a script file.

    Args:
        path: Path to the YAML script file

    Returns:
        Parsed script file

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is empty, not valid YAML or fails validation

    """
    if not path.is_file():
        raise FileNotFoundError(f"Script file not found: {path}")

    content = await asyncio.to_thread(path.read_text)

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        raise ValueError(f"Empty script file: {path}")

    try:
        script_file = ScriptFile.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid script file schema in {path}: {e}") from e

    log.debug("Loaded %d script(s) from %s", len(script_file.scripts), path)
    return script_file
