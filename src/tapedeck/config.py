"""
Configuration for cassette-scoped runs.

Settings can be given in code or loaded from YAML:

    # tapedeck.yaml
    verbose: true
    order_scope: key
    accumulate: false
"""

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

from tapedeck.schema import OrderScope


class TapedeckConfig(BaseModel):
    """
    Settings for with_cassette().

    Attributes:
        verbose: Print progress and a cassette summary to the console
        order_scope: Order scope used when playing a cassette back
        accumulate: Default for cassette data given as a bare name
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    verbose: bool = Field(
        default=False,
        description="Print progress and a cassette summary to the console",
    )
    order_scope: OrderScope = Field(
        default=OrderScope.KEY,
        description="Order scope used when playing a cassette back",
    )
    accumulate: bool = Field(
        default=False,
        description="Record on top of existing cassettes instead of replaying them",
    )


def load_config(path: Path | str) -> TapedeckConfig:
    """
    Load settings from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return TapedeckConfig.model_validate(data or {})


def load_config_from_string(content: str) -> TapedeckConfig:
    """Load settings from a YAML string."""
    data = yaml.safe_load(content)
    return TapedeckConfig.model_validate(data or {})
