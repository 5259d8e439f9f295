#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import List, Optional

from ladder_app.config.loader import ConfigLoader
from ladder_app.config.validation import ConfigValidationIssue, ConfigValidator
from ladder_app.errors import ConfigurationError


def validate_config_dir(config_dir: Optional[Path] = None) -> List[ConfigValidationIssue]:
    """Validate the merged configuration found in a config directory."""
    loader = ConfigLoader.create(config_dir)
    config = loader.merge_config()
    return ConfigValidator.validate_config(config)


def main():
    """Main validation function."""
    config_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    print("Validating step timeline configuration...")

    try:
        issues = validate_config_dir(config_dir)
    except ConfigurationError as e:
        print(f"Error loading configuration: {e.message}")
        sys.exit(1)

    if issues:
        print(f"Found {len(issues)} validation errors:")
        for issue in issues:
            print(f"  - {issue.field}: {issue.message} (value: {issue.value!r})")
        sys.exit(1)

    print("Configuration is valid")
    sys.exit(0)


if __name__ == "__main__":
    main()
