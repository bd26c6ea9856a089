import argparse

from usage_billing.db.engine import get_engine
from usage_billing.db.schema import metadata


def main():
    parser = argparse.ArgumentParser(description="Create the usage billing schema.")
    parser.add_argument("--reset", action="store_true", help="drop every table first")
    args = parser.parse_args()

    engine = get_engine()
    if args.reset:
        metadata.drop_all(engine)
    metadata.create_all(engine)
    print("DB schema created.")

if __name__ == "__main__":
    main()
