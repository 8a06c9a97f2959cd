"""Script to validate a template rule definition file

Usage:
    python -m scripts.validate_template path/to/template_rules.json
"""
import json
import sys

from checklist_rules.domain.errors import DependencyCycleError, TemplateValidationError
from checklist_rules.services.template_service import TemplateRuleService


def validate_template(path: str) -> int:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"❌ Could not read {path}: {e}")
        return 2

    service = TemplateRuleService()

    try:
        rules = service.parse_rules(data)
    except TemplateValidationError as e:
        print(f"❌ Invalid rule definition: {e.message}")
        for error in e.details.get("errors", []):
            location = ".".join(str(part) for part in error.get("loc", []))
            print(f"   • {location}: {error.get('msg')}")
        return 1

    print(f"✅ Loaded template: {rules.template_id}")
    print()
    print("=" * 60)
    print("RULE SUMMARY")
    print("=" * 60)
    print(f"\n📋 VARIABLES: {len(rules.variables)}")
    for variable in rules.variables:
        req = "✓" if variable.required else "○"
        deps = f" <- {', '.join(d.variable_id for d in variable.dependencies)}" if variable.dependencies else ""
        print(f"   {req} {variable.id} ({variable.type.value}){deps}")

    print(f"\n🔀 CONDITIONAL STEPS: {len(rules.conditional_steps)}")
    for step in rules.conditional_steps:
        print(
            f"   • {step.id}: {step.action.value} {step.step_id} "
            f"({len(step.conditions)} condition(s), {step.logical_operator.value}, priority {step.priority})"
        )

    print(f"\n📝 DYNAMIC CONTENT: {len(rules.dynamic_content)}")
    for binding in rules.dynamic_content:
        fallback = " [fallback]" if binding.fallback_content else ""
        print(f"   • {binding.target_id} ({binding.content_type.value}){fallback}")

    print("\n" + "=" * 60)
    print("DEPENDENCY CHECK")
    print("=" * 60)

    try:
        order = service.validate_template(rules)
    except DependencyCycleError as e:
        print(f"\n❌ Cycle: {' -> '.join(e.details.get('cycle', []))}")
        return 1
    except TemplateValidationError as e:
        print(f"\n❌ {e.message}")
        for ref in e.details.get("references", []):
            print(f"   • {ref['variable_id']} depends on undeclared {ref['depends_on']}")
        for duplicate in e.details.get("duplicates", []):
            print(f"   • duplicate variable {duplicate}")
        return 1

    print(f"\n✅ No cycles. Evaluation order: {' -> '.join(order) if order else '(none)'}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python -m scripts.validate_template <rules.json>")
        sys.exit(2)
    sys.exit(validate_template(sys.argv[1]))
