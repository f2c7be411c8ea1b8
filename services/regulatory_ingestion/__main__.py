import sys

from services.regulatory_ingestion.cli import main


if __name__ == "__main__":
    sys.exit(main())
