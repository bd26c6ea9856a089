# parse_data.py
"""
Parse a store usage CSV and print basic stats, without touching the database.

    python parse_data.py data/usage.csv
"""

import sys

from scripts.ingest import read_usage_file, FILE_PATH


def main():
    file_path = sys.argv[1] if len(sys.argv) > 1 else FILE_PATH
    rows, stats = read_usage_file(file_path)

    print(f"Usage rows read:       {stats['n_rows']}")
    print(f"Blank rows skipped:    {stats['n_blank']}")
    print(f"Distinct stores:       {stats['n_stores']}")
    print(f"Companies:             {', '.join(stats['companies']) or '-'}")
    print(f"Months:                {', '.join(stats['months']) or '-'}")
    print(f"Headers:               {', '.join(stats['headers'])}")


if __name__ == "__main__":
    main()
