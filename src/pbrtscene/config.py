"""
Parser configuration.

Options can be built in code or loaded from a YAML mapping:

    strict_numbers: true
    max_include_depth: 16
"""

from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Union


class ConfigError(ValueError):
    """Invalid configuration file or value."""
    pass


@dataclass
class ParseOptions:
    """Knobs controlling how scene files are read and interpreted."""
    strict_numbers: bool = False        # malformed numeric/bool values are errors
    expand_includes: bool = True        # splice Include targets into the stream
    detect_include_cycles: bool = True  # a file including itself is an error
    max_include_depth: int = 64
    encoding: str = "utf-8"
    omit_long_values: bool = False      # directive trace: abbreviate long lists
    long_value_threshold: int = 16

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParseOptions":
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"unknown option(s): {', '.join(unknown)}")
        defaults = cls()
        for name, value in data.items():
            expected = type(getattr(defaults, name))
            # bool is an int subclass; keep them apart
            if type(value) is not expected:
                raise ConfigError(
                    f"option '{name}' must be {expected.__name__}, got {type(value).__name__}"
                )
        options = cls(**data)
        if options.max_include_depth < 1:
            raise ConfigError("option 'max_include_depth' must be at least 1")
        return options

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def merged(self, **overrides) -> "ParseOptions":
        """Copy with the non-None overrides applied."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return ParseOptions.from_dict(data)


def load_options(path: Union[str, Path]) -> ParseOptions:
    """
    Load ParseOptions from a YAML file.

    An empty file yields the defaults.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigError: If the YAML is invalid or holds unknown options
    """
    import yaml

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {config_path}: {e}")

    if data is None:
        return ParseOptions()
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping of options")
    return ParseOptions.from_dict(data)
