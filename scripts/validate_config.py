#!/usr/bin/env python3
"""Configuration validation script."""

import sys
from pathlib import Path
from typing import List, Optional

from funded_rules.config.loader import ConfigLoader
from funded_rules.config.validation import ConfigValidator, ValidationError
from funded_rules.reference.instruments import LeverageTable
from funded_rules.rules.correlation import CorrelationTable


def validate_rules_file(loader: ConfigLoader) -> List[ValidationError]:
    """Validate firm-level overrides in rules.yaml."""
    return ConfigValidator.validate_overrides(loader.load_rules_config())


def check_correlation_table(loader: ConfigLoader) -> List[str]:
    """Report correlation entries whose lists contradict each other."""
    problems = []
    table = CorrelationTable.load(loader)

    for key, entry in sorted(table.entries.items()):
        both = entry.same_direction & entry.opposite_direction
        if both:
            problems.append(f"{key}: listed as both same and opposite direction: {sorted(both)}")
        if key in entry.same_direction or key in entry.opposite_direction:
            problems.append(f"{key}: correlated with itself")

    return problems


def main(config_dir: Optional[str] = None):
    """Main validation function."""
    print("🔍 Validating funded-rules configuration...")

    loader = ConfigLoader.create(Path(config_dir) if config_dir else None)
    all_valid = True

    print(f"\n📋 Checking rules.yaml in {loader.config_dir}...")
    errors = validate_rules_file(loader)
    if errors:
        print(f"❌ Found {len(errors)} validation errors:")
        for error in errors:
            print(f"  • {error.field}: {error.message} (value: {error.value})")
        all_valid = False
    else:
        print("✅ Rule overrides are valid")

    print("\n📊 Checking correlation table...")
    problems = check_correlation_table(loader)
    if problems:
        for problem in problems:
            print(f"  • {problem}")
        all_valid = False
    else:
        print("✅ Correlation table is consistent")

    print("\n📊 Checking fallback leverage table...")
    raw = loader.load_leverage_data()
    table = LeverageTable(raw)
    if len(table) != len(raw):
        print(f"❌ {len(raw) - len(table)} leverage entries are not positive numbers")
        all_valid = False
    else:
        print(f"✅ {len(table)} leverage entries loaded")

    if all_valid:
        print("\n🎉 All configuration validation passed!")
        sys.exit(0)
    else:
        print("\n❌ Configuration validation failed!")
        sys.exit(1)


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
