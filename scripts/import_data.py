#!/usr/bin/env python3
"""
Import an export document into a database, replacing or merging local data
"""

import os
import sys
from pathlib import Path

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vocab_analytics.core.database.database_manager import DatabaseManager  # noqa: E402
from vocab_analytics.export.assembler import ExportAssembler  # noqa: E402


def import_data(json_path: str, db_path: str, merge: bool = False) -> bool:
    """Apply an export document to a database"""
    mode = "merge" if merge else "overwrite"
    try:
        print(f"📖 Loading data from {json_path}")
        payload = Path(json_path).read_text(encoding="utf-8")

        db_manager = DatabaseManager(db_path)
        db_manager.init_database()
        state = db_manager.load_state()

        result = ExportAssembler().import_document(state, payload, mode=mode)
        if not result.success:
            print(f"❌ Import rejected: {result.error}")
            return False

        print(f"  📦 Document version: {result.version or 'unknown'} ({mode})")
        print(f"  📝 Words imported: {result.words_imported}")
        print(f"  📈 Tests imported: {result.tests_imported}")
        print(f"  📊 Performance records: {result.performances_imported}")
        print(f"  🎯 Attempts: {result.attempts_imported}")
        if result.skipped_records:
            print(f"  ⚠️  Skipped {result.skipped_records} malformed records")

        if not db_manager.replace_state(result.state):
            print("❌ Failed to write imported data")
            return False

        print(f"✅ Successfully imported data into {db_path}")
        return True

    except Exception as e:
        print(f"❌ Import failed: {e}")
        return False


def main():
    """Main import function"""
    args = [a for a in sys.argv[1:] if a != "--merge"]
    merge = "--merge" in sys.argv[1:]

    if len(args) != 2:
        print("Usage: python import_data.py <input_json_path> <database_path> [--merge]")
        print("Example: python import_data.py data/backup.json data/vocabulary.db --merge")
        sys.exit(1)

    json_path, db_path = args

    if not Path(json_path).exists():
        print(f"❌ JSON file not found: {json_path}")
        sys.exit(1)

    if import_data(json_path, db_path, merge=merge):
        print("🎉 Import completed successfully!")
        sys.exit(0)
    else:
        print("💥 Import failed!")
        sys.exit(1)


if __name__ == "__main__":
    main()
