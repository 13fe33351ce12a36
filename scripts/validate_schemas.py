"""Load the bundled payload schemas through the registry and list them."""

from bidflow.validation.validator import get_schema_registry


def main() -> None:
    registry = get_schema_registry()
    print(f"{len(registry.names)} schemas valid: {', '.join(registry.names)}")


if __name__ == "__main__":
    main()
