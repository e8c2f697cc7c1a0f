"""Create the publishing job tables."""

from src.influence.config import build_database, load_config


def main() -> None:
    runtime = build_database(load_config())
    runtime.engine.dispose()
    print("Database initialized.")


if __name__ == "__main__":
    main()
